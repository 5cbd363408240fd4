"""
ORM models. Importing this package registers every table with Base.metadata,
which Alembic's env.py relies on for --autogenerate.
"""

from app.models.person import Person

__all__ = ["Person"]
