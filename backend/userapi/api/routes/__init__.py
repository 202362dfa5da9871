"""Route Modules — one file per resource/concern.

Invariants:
    - Each module defines its own APIRouter with prefix, tags and ErrorForwardingRoute
"""
