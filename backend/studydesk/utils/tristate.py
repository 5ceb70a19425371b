"""Three-state field values for partial-update request bodies.

A JSON body distinguishes a key that is absent from one that is explicitly
``null`` and from one that carries a value. Pydantic collapses the first two
into ``None``, so handlers convert fields with :func:`field_state` instead::

    state = field_state(payload, "category_id")
    match state:
        case Unset(): ...
        case Clear(): ...
        case Set(value=v): ...
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


@dataclass(frozen=True)
class Unset:
    """The field was not present in the request."""


@dataclass(frozen=True)
class Clear:
    """The field was present and explicitly empty."""


@dataclass(frozen=True)
class Set(Generic[T]):
    value: T


FieldState = Unset | Clear | Set


def field_state(model: BaseModel, name: str, *, blank_is_clear: bool = True) -> FieldState:
    """Classify ``model.<name>`` as Unset, Clear or Set.

    With ``blank_is_clear`` an empty string counts as an explicit clear,
    matching how form inputs submit an emptied select box.
    """
    if name not in model.model_fields_set:
        return Unset()
    value = getattr(model, name)
    if value is None or (blank_is_clear and value == ""):
        return Clear()
    return Set(value)


def is_unset(state: FieldState) -> bool:
    return isinstance(state, Unset)
