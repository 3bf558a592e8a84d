"""Services Layer — async orchestration of the pure core over the database.

Invariants:
    - Services load rows, call core/ for every decision, then write
    - Business-rule outcomes returned as typed results, never raised

Design Decisions:
    - Role lifecycle and principal bindings in separate classes (no god objects)
"""
