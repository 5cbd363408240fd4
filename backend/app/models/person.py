"""
Persons API — Person SQLAlchemy Model
=======================================

What:  ORM model representing the `persons` table.
Why:   Maps Python objects to database rows for type-safe CRUD operations.
How:   Inherits from the shared DeclarativeBase; the table itself is created
       by Alembic revision 001, never by metadata.create_all in production.

Table Design Rationale:
    - Integer autoincrement primary key: assigned by the database on insert,
      immutable afterwards (PUT only touches name and age)
    - name / age: NOT NULL; the API requires both on create and update
"""

from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class Person(Base):
    """
    A person record.

    Lifecycle:
        1. Created by POST /persons (id assigned on flush)
        2. Updated in place by PUT /persons/{id} (name and age only)
        3. Deleted by DELETE /persons/{id}
    """

    __tablename__ = "persons"

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    age: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Person(id={self.id}, name='{self.name}', age={self.age})>"
