"""Decade catalog: the fixed, ordered set of work items for one run.

The catalog is configuration, not data.  It is built once from
``config.decades`` and never mutated; its order decides album layout and the
order decades are handed to workers, nothing else.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from .errors import UnknownDecadeError


@dataclass(frozen=True)
class Decade:
    """One catalog entry.

    Attributes:
        id: Opaque identifier used as the result key (e.g. ``"1970s"``).
        label: Display label used in prompts and captions.
    """

    id: str
    label: str


class Catalog:
    """Immutable ordered collection of :class:`Decade` entries."""

    def __init__(self, decades: Iterable[Decade]) -> None:
        self._decades: tuple[Decade, ...] = tuple(decades)
        if not self._decades:
            raise ValueError("A catalog needs at least one decade")
        self._index = {decade.id: position for position, decade in enumerate(self._decades)}
        if len(self._index) != len(self._decades):
            raise ValueError("Catalog identifiers must be unique")

    @classmethod
    def from_labels(cls, labels: Iterable[str]) -> Catalog:
        """Build a catalog whose identifiers double as display labels."""
        return cls(Decade(id=label, label=label) for label in labels)

    def __iter__(self) -> Iterator[Decade]:
        return iter(self._decades)

    def __len__(self) -> int:
        return len(self._decades)

    def __contains__(self, decade_id: object) -> bool:
        return decade_id in self._index

    def __repr__(self) -> str:
        return f"Catalog({list(self.ids)!r})"

    @property
    def ids(self) -> tuple[str, ...]:
        return tuple(decade.id for decade in self._decades)

    def get(self, decade_id: str) -> Decade:
        """Return the entry for ``decade_id``.

        Raises:
            UnknownDecadeError: If the identifier is not in the catalog.
        """
        if decade_id not in self._index:
            raise UnknownDecadeError(decade_id)
        return self._decades[self._index[decade_id]]

    def label(self, decade_id: str) -> str:
        return self.get(decade_id).label
