"""
PDSls - AT Protocol repository browser

This package lets a user inspect the AT Protocol network by typing a handle, DID, PDS URL or
AT-URI and browsing down from server to repository to collection to record.

Key Components:
- address: Normalizes free-form input into canonical addresses and navigation routes
- resolve: Identity resolution for handles and DIDs (handle -> DID -> PDS)
- atproto: XRPC sessions bound to a single PDS, the request middleware chain, and pagination
- views: Per-view state machines and the navigator that mounts one view at a time
- app: Configuration, logging, metrics, the JSON web service and command line entry points

Navigation Flow:
1. Raw input is normalized into an Address
2. Handles are resolved to DIDs and DIDs to their serving PDS
3. A stateless XRPC session is created against the PDS
4. The active view issues its call (listRepos, describeRepo, listRecords or getRecord)
5. Listings grow page by page in response to explicit "load more" requests
"""
