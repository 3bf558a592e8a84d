"""Custom Roles Package — account-scoped custom-role permissions and authorization.

Invariants:
    - Package root contains no executable code (import side-effects prohibited)

Design Decisions:
    - Empty __init__.py: explicit imports only, no star exports
"""
