"""
Identity Resolution

Resolves AT Protocol identifiers (handles, DIDs) to the PDS that serves their repository.

Key Components:
- handle.py: Handle and DID resolution, and the IdentityResolver used by views
- __main__.py: CLI interface for resolution

Resolution flow:
1. Identifiers that already are DIDs skip handle resolution
2. Handles resolve via DNS TXT (_atproto.{handle}) and HTTPS (.well-known/atproto-did)
   concurrently, preferring DNS
3. did:plc documents come from the PLC directory, did:web documents from /.well-known/did.json
4. The AtprotoPersonalDataServer service entry names the PDS
"""
