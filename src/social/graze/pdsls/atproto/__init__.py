"""
AT Protocol Integration

This package provides unauthenticated access to the repository XRPC surface of a Personal
Data Server (PDS).

Key Components:
- chain.py: Middleware chain for XRPC requests (metrics, debug logging)
- xrpc.py: Sessions bound to one PDS and the decoded wire models
- pagination.py: Cursor-driven page fetching and accumulation
- pds.py: Discovery of known PDS hosts
"""
