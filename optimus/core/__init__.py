"""Core Layer: error types and request body rules. No IO, no FastAPI imports.

Invariants:
    - No module in core/ imports from api/, services/ or infrastructure/
"""
