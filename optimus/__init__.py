"""optimus: JSON transformation gateway.

Invariants:
    - Package root has no import side effects beyond the identity constants
    - The service name is fixed; deployment environment never renames it
"""

__version__ = "1.2.3"
SERVICE_NAME = "optimus"
