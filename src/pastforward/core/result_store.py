"""Result Store: per-decade generation state for one photo cycle.

The store is the single source of truth read by the scheduler (to decide
whether a decade may be regenerated) and by the album compositor (to decide
whether every image is ready).

State model
-----------
Each decade maps to a :class:`ResultEntry` that is replaced wholesale on every
transition.  Caption overrides live beside the entries with their own
lifecycle: they survive regeneration and are cleared only by :meth:`reset`.

Store generations
-----------------
Every :meth:`ResultStore.reset` advances :attr:`ResultStore.generation`.
Asynchronous work records the generation it started against and passes it to
:meth:`ResultStore.apply`; a write tagged with an older generation is
discarded, so a generation that finishes after "start over" cannot leak into
the fresh store.

Observers
---------
:meth:`ResultStore.subscribe` registers a callback that receives a
:class:`StoreEvent` synchronously, immediately after each change.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from enum import Enum

from .catalog import Catalog

logger = logging.getLogger(__name__)


class Status(str, Enum):
    """Lifecycle of one decade's generation."""

    PENDING = "pending"
    DONE = "done"
    ERROR = "error"


@dataclass(frozen=True)
class ResultEntry:
    """Immutable state of one decade.

    Attributes:
        status: Current lifecycle state.
        payload: Generated image as a data URL; set only when ``DONE``.
        error: Human-readable failure message; set only when ``ERROR``.

    Raises:
        ValueError: If ``payload``/``error`` do not match ``status``.
    """

    status: Status
    payload: str | None = None
    error: str | None = None

    def __post_init__(self) -> None:
        if self.status is Status.DONE:
            if not self.payload or self.error is not None:
                raise ValueError("A done entry needs a payload and no error")
        elif self.status is Status.ERROR:
            if not self.error or self.payload is not None:
                raise ValueError("An error entry needs a message and no payload")
        elif self.payload is not None or self.error is not None:
            raise ValueError("A pending entry carries neither payload nor error")

    @classmethod
    def pending(cls) -> ResultEntry:
        return cls(Status.PENDING)

    @classmethod
    def done(cls, payload: str) -> ResultEntry:
        return cls(Status.DONE, payload=payload)

    @classmethod
    def failed(cls, error: str) -> ResultEntry:
        return cls(Status.ERROR, error=error)


@dataclass(frozen=True)
class StoreEvent:
    """Notification published to store observers.

    Attributes:
        kind: ``"transition"``, ``"caption"``, or ``"reset"``.
        generation: Store generation the change belongs to.
        decade: Affected decade (``None`` for resets).
        entry: New entry for transitions.
        caption: New caption override for caption changes (``None`` = cleared).
    """

    kind: str
    generation: int
    decade: str | None = None
    entry: ResultEntry | None = None
    caption: str | None = None


Observer = Callable[[StoreEvent], None]


class ResultStore:
    """Mutable mapping of decade identifier to :class:`ResultEntry`."""

    def __init__(self) -> None:
        self._entries: dict[str, ResultEntry] = {}
        self._captions: dict[str, str] = {}
        self._observers: list[Observer] = []
        self._generation = 0

    @property
    def generation(self) -> int:
        """Counter advanced by every :meth:`reset`."""
        return self._generation

    # -- Reads --------------------------------------------------------------

    def snapshot(self) -> dict[str, ResultEntry]:
        """Return a copy of all entries (entries themselves are immutable)."""
        return dict(self._entries)

    def get(self, decade: str) -> ResultEntry | None:
        return self._entries.get(decade)

    def status(self, decade: str) -> Status:
        """Return the decade's status; decades without an entry read as pending."""
        entry = self._entries.get(decade)
        return entry.status if entry is not None else Status.PENDING

    def captions(self) -> dict[str, str]:
        return dict(self._captions)

    def get_caption(self, decade: str) -> str | None:
        return self._captions.get(decade)

    # -- Writes -------------------------------------------------------------

    def apply(self, decade: str, entry: ResultEntry, generation: int | None = None) -> bool:
        """Replace the entry for ``decade``.

        Args:
            decade: Identifier to update.
            entry: Complete new entry.
            generation: Generation the writer started against.  ``None``
                applies unconditionally.

        Returns:
            ``True`` if the entry was stored, ``False`` if the write was stale
            and discarded.
        """
        if generation is not None and generation != self._generation:
            logger.debug(
                "Discarding stale %s result for %s (generation %d, current %d).",
                entry.status.value,
                decade,
                generation,
                self._generation,
            )
            return False
        self._entries[decade] = entry
        self._publish(StoreEvent("transition", self._generation, decade=decade, entry=entry))
        return True

    def set_caption(self, decade: str, caption: str | None) -> None:
        """Set or clear (``caption=None``) the caption override for ``decade``."""
        if caption is None:
            self._captions.pop(decade, None)
        else:
            self._captions[decade] = caption
        self._publish(StoreEvent("caption", self._generation, decade=decade, caption=caption))

    def reset(self) -> None:
        """Clear every entry and caption override and advance the generation."""
        self._entries.clear()
        self._captions.clear()
        self._generation += 1
        logger.info("Result store reset (generation %d).", self._generation)
        self._publish(StoreEvent("reset", self._generation))

    # -- Observers ----------------------------------------------------------

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Register ``observer`` and return a function that unregisters it."""
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def _publish(self, event: StoreEvent) -> None:
        for observer in list(self._observers):
            try:
                observer(event)
            except Exception:
                logger.exception("Result store observer failed on %s event.", event.kind)


# ---------------------------------------------------------------------------
# Pure helpers over snapshots.
# ---------------------------------------------------------------------------


def completed_decades(snapshot: Mapping[str, ResultEntry], catalog: Catalog) -> list[str]:
    """Return the identifiers whose entry is done, in catalog order."""
    done: list[str] = []
    for decade in catalog:
        entry = snapshot.get(decade.id)
        if entry is not None and entry.status is Status.DONE:
            done.append(decade.id)
    return done


def missing_decades(snapshot: Mapping[str, ResultEntry], catalog: Catalog) -> list[str]:
    """Return the identifiers without a done entry, in catalog order."""
    done = set(completed_decades(snapshot, catalog))
    return [decade_id for decade_id in catalog.ids if decade_id not in done]


def is_album_ready(snapshot: Mapping[str, ResultEntry], catalog: Catalog) -> bool:
    """Album readiness predicate: every catalog decade is done."""
    return len(completed_decades(snapshot, catalog)) == len(catalog)


@dataclass(frozen=True)
class AlbumRequest:
    """Inputs for the album compositor.

    Attributes:
        images: Done payloads keyed by identifier, in catalog order.
        captions: Resolved caption per catalog identifier (override when it
            is non-blank, otherwise the display label).
    """

    images: dict[str, str]
    captions: dict[str, str]

    @property
    def decades(self) -> list[str]:
        return list(self.images)


def resolve_caption(catalog: Catalog, decade: str, override: str | None) -> str:
    """Return the caption shown for ``decade``."""
    if override is not None and override.strip():
        return override.strip()
    return catalog.label(decade)


def build_album_request(
    snapshot: Mapping[str, ResultEntry],
    captions: Mapping[str, str],
    catalog: Catalog,
) -> AlbumRequest:
    """Assemble an :class:`AlbumRequest` from a store snapshot.

    Only done entries contribute images; completeness is checked by the
    caller (see :func:`is_album_ready`).
    """
    images = {
        decade_id: snapshot[decade_id].payload  # type: ignore[misc]
        for decade_id in completed_decades(snapshot, catalog)
    }
    resolved = {
        decade_id: resolve_caption(catalog, decade_id, captions.get(decade_id))
        for decade_id in catalog.ids
    }
    return AlbumRequest(images=images, captions=resolved)


def entries_in_order(
    snapshot: Mapping[str, ResultEntry], catalog: Catalog
) -> Iterable[tuple[str, ResultEntry | None]]:
    """Yield ``(identifier, entry-or-None)`` pairs in catalog order."""
    for decade_id in catalog.ids:
        yield decade_id, snapshot.get(decade_id)
