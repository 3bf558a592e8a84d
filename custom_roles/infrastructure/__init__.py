"""Infrastructure Layer — database sessions and cross-cutting concerns.

Invariants:
    - Infrastructure never imports core decision logic (errors only)
    - All SQLAlchemy failures mapped to DatabaseError
"""
