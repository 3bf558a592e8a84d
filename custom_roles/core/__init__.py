"""Core Layer — pure permission and authorization logic, no IO, no async, no DB.

Invariants:
    - No module in core/ imports from services/, api/, infrastructure/, models/ or db/
    - All functions are pure and deterministic

Design Decisions:
    - Functional core separated from imperative shell: the shell loads rows,
      the core decides, the shell writes
"""
