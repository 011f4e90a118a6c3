from __future__ import annotations

import typing

if typing.TYPE_CHECKING:
    from .fields import FormField

__all__ = ["FieldStore"]


class FieldStore:
    """
    An insertion-ordered container mapping a field name to every
    :class:`~formpost.fields.FormField` appended under that name.

    The first ``add`` of a name fixes its position. Adding the same name
    again extends that name's list without moving it, so iteration yields
    names in first-seen order and, within a name, fields in append order.
    """

    def __init__(self) -> None:
        self._container: dict[str, list[FormField]] = {}

    def add(self, field: FormField) -> None:
        """Adds a field, never overwriting fields already stored under its name."""
        fields = self._container.setdefault(field.name, [])
        fields.append(field)

    def getlist(self, name: str) -> list[FormField] | None:
        """Returns the fields stored under ``name`` or ``None`` if the name
        was never added."""
        fields = self._container.get(name)
        if fields is None:
            return None
        return list(fields)

    def discard(self, name: str) -> None:
        self._container.pop(name, None)

    def __contains__(self, name: object) -> bool:
        return name in self._container

    def __len__(self) -> int:
        return len(self._container)

    def __iter__(self) -> typing.Iterator[str]:
        yield from self._container

    def iterfields(self) -> typing.Iterator[FormField]:
        """Iterate over all fields, name by name."""
        for fields in self._container.values():
            yield from fields

    def __repr__(self) -> str:
        return f"{type(self).__name__}({list(self._container)})"
