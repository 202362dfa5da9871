"""Infrastructure — connection pool, logging setup and process-level guards.

Invariants:
    - One Database (engine + pool) per app, created in the lifespan or injected

Design Decisions:
    - asyncpg driver for PostgreSQL (native async, no thread pool overhead)
"""
