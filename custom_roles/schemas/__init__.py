"""Pydantic Schemas — request/response validation for API endpoints.

Invariants:
    - Schemas validate transport shape only; role rules live in core/validate_role
    - Domain enums from core/ used for enum fields

Design Decisions:
    - Separate from models: schemas are API contracts, models are persistence
"""
