"""
PDSls Application Layer

Configuration, logging, metrics and the outer surfaces over the navigation core.

Key Components:
- config.py: Configuration management using pydantic settings, and AppKeys for shared resources
- metrics.py: Metrics client abstraction (Telegraf/StatsD or no-op)
- server.py: aiohttp JSON web service exposing the navigation URL space
- cli.py: Logging setup and the web service entry point
- browse.py: Command line browsing of a single input

Web routes:
- GET / and POST / (input form submission, redirects to the canonical path)
- GET /internal/alive, /internal/api/pds, /internal/api/resolve
- GET /{pds}[/{repo}[/{collection}[/{rkey}]]] (mounts the matching view)
"""
