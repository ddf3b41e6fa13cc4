"""Photo session: one "new photo" cycle of Past Forward.

A :class:`PastForwardSession` owns the uploaded photo, the
:class:`~pastforward.core.result_store.ResultStore`, and the
:class:`~pastforward.core.scheduler.WorkScheduler` built on top of it.  The
HTTP API and the batch CLI both drive the core exclusively through this
class.

Lifecycle
---------
1. :meth:`upload_photo` stores the photo and resets the result store.
2. :meth:`generate_all` (or :meth:`begin_batch` + :meth:`drain`) runs one
   batch over the catalog.
3. The user inspects results, edits captions (:meth:`set_caption`), and
   regenerates individual decades (:meth:`regenerate`).
4. Once every decade is done, :meth:`build_album` composes the album.
5. :meth:`start_over` forgets the photo and resets the store.

Album composition is CPU-bound and runs in a worker thread via
``asyncio.to_thread`` so the event loop keeps serving requests.
"""

from __future__ import annotations

import asyncio
import logging

from .album import compose_album
from .catalog import Catalog
from .config import PastForwardConfig
from .errors import MissingInputsError, ResultUnavailableError
from .exports import ShareBundle, album_share_bundle, decade_filename, decade_share_bundle
from .generator_client import GeneratorClient
from .images import ImagePayload, parse_data_url, validate_image
from .result_store import (
    AlbumRequest,
    ResultEntry,
    ResultStore,
    Status,
    build_album_request,
    is_album_ready,
    missing_decades,
)
from .scheduler import Batch, WorkScheduler

logger = logging.getLogger(__name__)


class PastForwardSession:
    """State and operations for one user's photo cycle.

    Attributes:
        config: Application configuration.
        catalog: Decade catalog built from ``config.decades``.
        store: Result store shared by scheduler and compositor.
        scheduler: Worker-pool scheduler bound to ``store``.
        source_image: Uploaded photo as a data URL, or ``None``.
    """

    def __init__(self, config: PastForwardConfig, client: GeneratorClient) -> None:
        self.config = config
        self.client = client
        self.catalog = Catalog.from_labels(config.decades)
        self.store = ResultStore()
        self.scheduler = WorkScheduler(
            self.store, client, self.catalog, worker_count=config.worker_count
        )
        self.source_image: str | None = None

    # -- Photo cycle --------------------------------------------------------

    def upload_photo(self, data_url: str) -> None:
        """Start a new photo cycle with ``data_url`` as the source image.

        Raises:
            ValueError: If ``data_url`` is not a readable image.
        """
        payload = validate_image(data_url)
        self.source_image = data_url
        self.store.reset()
        logger.info("Photo uploaded (%s, %d bytes).", payload.mime_type, len(payload.data))

    def start_over(self) -> None:
        """Forget the photo, every result, and every caption override."""
        self.source_image = None
        self.store.reset()
        logger.info("Session reset.")

    # -- Generation ---------------------------------------------------------

    def begin_batch(self) -> Batch:
        return self.scheduler.begin_batch(self.source_image)

    async def drain(self, batch: Batch) -> None:
        await self.scheduler.drain(batch)

    async def generate_all(self) -> None:
        await self.scheduler.run_batch(self.source_image)

    async def regenerate(self, decade: str) -> bool:
        return await self.scheduler.regenerate(self.source_image, decade)

    @property
    def is_generating(self) -> bool:
        return self.scheduler.is_running

    # -- Captions -----------------------------------------------------------

    def set_caption(self, decade: str, caption: str | None) -> None:
        """Set or clear the caption override of a catalog decade."""
        self.catalog.get(decade)
        self.store.set_caption(decade, caption)

    # -- Results ------------------------------------------------------------

    def entry(self, decade: str) -> ResultEntry | None:
        self.catalog.get(decade)
        return self.store.get(decade)

    def album_ready(self) -> bool:
        return is_album_ready(self.store.snapshot(), self.catalog)

    def album_request(self) -> AlbumRequest:
        """Build the compositor inputs.

        Raises:
            MissingInputsError: If any decade is not done yet.
        """
        snapshot = self.store.snapshot()
        if not is_album_ready(snapshot, self.catalog):
            raise MissingInputsError(missing_decades(snapshot, self.catalog))
        return build_album_request(snapshot, self.store.captions(), self.catalog)

    async def build_album(self) -> bytes:
        """Compose the album JPEG from the current results.

        Raises:
            MissingInputsError: If any decade is not done yet.
            CompositionFailure: If rendering fails.
        """
        return await self._compose(self.album_request())

    async def _compose(self, request: AlbumRequest) -> bytes:
        return await asyncio.to_thread(
            compose_album,
            request.images,
            request.captions,
            self.catalog.ids,
            jpeg_quality=self.config.album_jpeg_quality,
            font_path=self.config.album_font_path,
        )

    # -- Downloads and shares -----------------------------------------------

    def decade_image(self, decade: str) -> ImagePayload:
        """Return the raw generated image of a done decade.

        Raises:
            UnknownDecadeError: If ``decade`` is not in the catalog.
            ResultUnavailableError: If the decade is not done.
        """
        entry = self.entry(decade)
        if entry is None or entry.status is not Status.DONE:
            raise ResultUnavailableError(decade)
        return parse_data_url(entry.payload)  # type: ignore[arg-type]

    def decade_download(self, decade: str) -> tuple[str, ImagePayload]:
        return decade_filename(decade), self.decade_image(decade)

    def decade_share(self, decade: str) -> ShareBundle:
        image = self.decade_image(decade)
        return decade_share_bundle(decade, image.data, image.mime_type)

    async def album_share(self) -> ShareBundle:
        request = self.album_request()
        data = await self._compose(request)
        return album_share_bundle(request.decades, data)
