"""
Database package initialization.

The package follows a modular structure:
- base: declarative base and mixins
- connection: async engine and unit-of-work sessions
- models: SQLAlchemy ORM models for all entities
"""

__all__ = []
