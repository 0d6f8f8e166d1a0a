"""FastAPI dependencies for database sessions, actors and idempotency keys."""

from fastapi import Depends, Header

from .database import get_db
from .exceptions import ValidationError


async def get_actor(x_actor: str = Header("system", alias="X-Actor")) -> str:
    """
    Name of the back-office user performing the request.

    Authentication happens upstream; the hosted auth proxy forwards the
    signed-in user as X-Actor and it is recorded in booking history.
    """
    actor = x_actor.strip()
    return actor[:255] if actor else "system"


async def get_idempotency_key(
    idempotency_key: str = Header(..., alias="Idempotency-Key")
) -> str:
    """
    Validate the Idempotency-Key header on money-moving requests.

    Raises:
        ValidationError: If the key is blank or longer than 255 characters
    """
    key = idempotency_key.strip()
    if not key or len(key) > 255:
        raise ValidationError(
            detail="Idempotency-Key must be between 1 and 255 characters",
            errors={"Idempotency-Key": idempotency_key[:32]},
        )
    return key


DatabaseSession = Depends(get_db)
Actor = Depends(get_actor)
IdempotencyKey = Depends(get_idempotency_key)
