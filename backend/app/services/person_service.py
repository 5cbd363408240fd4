"""
Persons API — Person Service (CRUD Business Logic)
====================================================

What:  Create, list, update, and delete operations for Person rows.
Why:   Keeps persistence logic independent of HTTP concerns.
How:   Stateless service; each call receives the request's AsyncSession.
       Commit/rollback is owned by get_db_session, so methods only flush.
Who:   Called by the /persons route handlers.

Error Handling Strategy:
    Missing rows become NotFoundError (→ 404). SQLAlchemy failures are
    logged and wrapped in DatabaseError (→ 500 with a generic message).
"""

import logging
from typing import List

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import DatabaseError, NotFoundError
from app.models.person import Person
from app.schemas.common import MessageResponse
from app.schemas.person import PersonCreate, PersonResponse, PersonUpdate

logger = logging.getLogger(__name__)


class PersonService:
    """
    Business logic layer for person operations.

    Responsibilities:
        - create_person(): Insert and return the row with its assigned id
        - list_persons(): All persons, ordered by id
        - update_person(): Overwrite name and age of an existing person
        - delete_person(): Remove an existing person
    """

    async def create_person(self, db: AsyncSession, data: PersonCreate) -> PersonResponse:
        """
        Insert a new person.

        The id is assigned by the database during flush; the client cannot
        choose it (PersonCreate has no id field).

        Raises:
            DatabaseError: Insert failed
        """
        person = Person(name=data.name, age=data.age)
        try:
            db.add(person)
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error creating person: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not create the person. Please try again.",
                context={"error_type": type(e).__name__},
            )

        logger.info("Person created: id=%s", person.id)
        return PersonResponse.model_validate(person)

    async def list_persons(self, db: AsyncSession) -> List[PersonResponse]:
        """Return every person, ordered by id."""
        try:
            result = await db.execute(select(Person).order_by(Person.id))
            persons = result.scalars().all()
        except SQLAlchemyError as e:
            logger.error("Database error listing persons: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not retrieve persons. Please try again.",
                context={"error_type": type(e).__name__},
            )

        return [PersonResponse.model_validate(person) for person in persons]

    async def update_person(
        self, db: AsyncSession, person_id: int, data: PersonUpdate
    ) -> PersonResponse:
        """
        Replace name and age of an existing person.

        Raises:
            NotFoundError: No person with this id (→ 404)
            DatabaseError: Query or flush failed (→ 500)
        """
        try:
            person = await db.get(Person, person_id)
            if person is None:
                raise NotFoundError(resource="Person", resource_id=person_id)

            person.name = data.name
            person.age = data.age
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error updating person %s: %s", person_id, str(e))
            raise DatabaseError(
                message="Could not update the person. Please try again.",
                context={"person_id": person_id},
            )

        logger.info("Person updated: id=%s", person_id)
        return PersonResponse.model_validate(person)

    async def delete_person(self, db: AsyncSession, person_id: int) -> MessageResponse:
        """
        Delete an existing person.

        Raises:
            NotFoundError: No person with this id (→ 404)
            DatabaseError: Query or flush failed (→ 500)
        """
        try:
            person = await db.get(Person, person_id)
            if person is None:
                raise NotFoundError(resource="Person", resource_id=person_id)

            await db.delete(person)
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error deleting person %s: %s", person_id, str(e))
            raise DatabaseError(
                message="Could not delete the person. Please try again.",
                context={"person_id": person_id},
            )

        logger.info("Person deleted: id=%s", person_id)
        return MessageResponse(message=f"Person with ID {person_id} deleted.")


person_service = PersonService()
