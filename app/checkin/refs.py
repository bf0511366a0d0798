"""Normalize references that may arrive bare or populated.

API payloads carry foreign keys either as a bare id (``"e1"``) or expanded
into the referenced object (``{"_id": "e1", "eventName": ...}``), depending
on which endpoint produced them. ``to_ref`` turns either form into a tagged
``Ref`` so that nothing downstream has to inspect the raw shape again.
"""

from collections.abc import Mapping
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class IdRef(BaseModel):
    """A reference given as a bare identifier."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["id"] = "id"
    id: str


class ExpandedRef(BaseModel):
    """A reference populated with the referenced object."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["expanded"] = "expanded"
    id: str
    value: dict[str, Any]


Ref = Annotated[IdRef | ExpandedRef, Field(discriminator="kind")]


def to_ref(raw: Any) -> IdRef | ExpandedRef | None:
    """
    Build a Ref from a raw reference value.

    Mappings are treated as populated objects: their id is ``_id`` when
    present, otherwise the string form of the whole mapping. Anything else is
    a bare id and is compared by its string form. Refs pass through
    unchanged; None stays None.
    """
    if raw is None:
        return None
    if isinstance(raw, IdRef | ExpandedRef):
        return raw
    if isinstance(raw, Mapping):
        ident = raw.get("_id")
        return ExpandedRef(id=str(ident) if ident is not None else str(raw), value=dict(raw))
    return IdRef(id=str(raw))


def ref_id(raw: Any) -> str | None:
    """Canonical string id of a bare, populated or already-normalized reference."""
    ref = to_ref(raw)
    return ref.id if ref is not None else None


def same_ref(left: Any, right: Any) -> bool:
    """True when both references resolve to the same id. Missing never matches."""
    left_id = ref_id(left)
    return left_id is not None and left_id == ref_id(right)


def expanded_value(raw: Any) -> dict[str, Any] | None:
    """The populated object behind a reference, or None for bare ids."""
    ref = to_ref(raw)
    if isinstance(ref, ExpandedRef):
        return ref.value
    return None
