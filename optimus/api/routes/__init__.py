"""Route Modules: one file per endpoint.

Invariants:
    - Each module defines its own APIRouter
    - not_found.router is included last; it matches everything the others do not
"""
