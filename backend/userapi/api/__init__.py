"""API Layer — FastAPI routes, request pipeline middleware and error handlers.

Invariants:
    - Routes registered explicitly in main.py (no auto-discovery)
    - All endpoints return JSON; all failures return the error envelope

Design Decisions:
    - Thin routes issue their SQL through the injected Database, no service layer
"""
