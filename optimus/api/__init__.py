"""API Layer: pipeline stages, routes and error handlers.

Invariants:
    - Routes registered explicitly when the pipeline is built (no auto-discovery)
    - Every response body is either the route's JSON output or a plain-text error message
"""
