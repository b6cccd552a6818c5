"""Coercion of raw identifiers into typed domain IDs."""

from typing import TypeVar
from uuid import UUID

from ticketing.domain.errors import InvalidIdentifierError

IdT = TypeVar("IdT")


def parse_id(id_type: type[IdT], raw: "IdT | UUID | str", kind: str) -> IdT:
    """Return ``raw`` as ``id_type``.

    Raises:
        InvalidIdentifierError: If ``raw`` is not a valid UUID.
    """
    if isinstance(raw, id_type):
        return raw
    if isinstance(raw, UUID):
        return id_type(raw)  # type: ignore[call-arg]
    try:
        return id_type.from_string(str(raw))  # type: ignore[attr-defined]
    except ValueError as exc:
        raise InvalidIdentifierError(kind) from exc
