"""
Views

Per-depth state machines and the navigator that mounts one of them at a time.

Key Components:
- base.py: The shared state machine, transition table and listing behaviour
- server.py, repository.py, collection.py, record.py: One view per navigation depth
- navigator.py: Route-to-view mounting, input submission and the notice slot
- render.py: Value and list item rendering collaborators
"""
