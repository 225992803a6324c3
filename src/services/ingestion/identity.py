"""Deterministic chunk identity.

Chunk ids are derived purely from the document id and the chunk's
position, so re-ingesting an unchanged document produces the same ids and
the store upsert replaces points instead of duplicating them.

Some stores only accept UUIDs or unsigned integers as point ids.  For
those, :func:`canonicalize` maps a natural id onto a name-based UUID
(``uuid5``) in a fixed project namespace.  ``uuid4`` is never used here:
a random id would break idempotency.
"""

from __future__ import annotations

import uuid

from src.utils.errors import ConfigurationError

# Fixed namespace for name-based point ids.  Changing it re-keys every
# stored point, so treat it as part of the storage format.
POINT_ID_NAMESPACE = uuid.UUID("8f1c2e4a-6b3d-5a7e-9c0f-1d2b3a4c5e6f")

ID_FORMATS = ("natural", "uuid")


def assign(document_id: str, chunk_index: int) -> str:
    """Return the natural chunk id ``"<document_id>_chunk_<chunk_index>"``."""
    return f"{document_id}_chunk_{chunk_index}"


def canonicalize(chunk_id: str, id_format: str = "natural") -> str | int:
    """Map *chunk_id* onto the id format the store expects.

    ``"natural"`` returns the id unchanged.  ``"uuid"`` keeps an id that
    already parses as a UUID, turns a purely numeric id into an ``int``,
    and derives ``uuid5(POINT_ID_NAMESPACE, chunk_id)`` for anything else.
    """
    if id_format == "natural":
        return chunk_id
    if id_format != "uuid":
        raise ConfigurationError(
            message=f"Unknown point id format {id_format!r}; expected one of {ID_FORMATS}"
        )

    try:
        uuid.UUID(chunk_id)
    except ValueError:
        pass
    else:
        return chunk_id
    if chunk_id.isdigit():
        return int(chunk_id)
    return str(uuid.uuid5(POINT_ID_NAMESPACE, chunk_id))
