"""Download filenames, share bundles, and share delivery.

Past Forward hands finished images to two kinds of platform primitives: a
file save (download) and a native share sheet.  Both live outside this
package; this module only prepares what they receive.

Filenames
---------
- single decade: ``past-forward-<decade>.jpg``
- album download: ``past-forward-album.jpg``
- album share: ``past-forward-album-<first>-<last>.jpg`` where first and
  last come from the completed decades in catalog order

Share delivery
--------------
:func:`share_bundle` calls a *sharer* (any callable taking a
:class:`ShareBundle`).  A sharer raises
:class:`~pastforward.core.errors.ShareCancelled` when the user dismisses the
dialog; that outcome is silent.  Every other exception is logged and
re-raised as :class:`~pastforward.core.errors.ShareFailure`.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from .errors import ShareCancelled, ShareFailure
from .images import to_data_url

logger = logging.getLogger(__name__)

APP_NAME = "Past Forward"
FILE_PREFIX = "past-forward"


def decade_filename(decade: str) -> str:
    return f"{FILE_PREFIX}-{decade}.jpg"


def album_filename() -> str:
    return f"{FILE_PREFIX}-album.jpg"


def album_share_filename(decades: Sequence[str]) -> str:
    """Return the share filename spanning the first and last decade."""
    if not decades:
        raise ValueError("An album share needs at least one decade")
    return f"{FILE_PREFIX}-album-{decades[0]}-{decades[-1]}.jpg"


@dataclass(frozen=True)
class ShareBundle:
    """Everything a native share sheet needs.

    Attributes:
        filename: File name presented to the receiving app.
        title: Share title.
        text: Share message body.
        data: Encoded image bytes.
        mime_type: Media type of ``data``.
    """

    filename: str
    title: str
    text: str
    data: bytes
    mime_type: str = "image/jpeg"

    def to_data_url(self) -> str:
        return to_data_url(self.data, self.mime_type)


def decade_share_bundle(decade: str, data: bytes, mime_type: str = "image/jpeg") -> ShareBundle:
    return ShareBundle(
        filename=decade_filename(decade),
        title=f"My {decade} Look!",
        text=f"Check out my look from the {decade}, generated by {APP_NAME}!",
        data=data,
        mime_type=mime_type,
    )


def album_share_bundle(decades: Sequence[str], data: bytes) -> ShareBundle:
    if not decades:
        raise ValueError("An album share needs at least one decade")
    return ShareBundle(
        filename=album_share_filename(decades),
        title=f"My {APP_NAME} Album: {decades[0]} - {decades[-1]}",
        text=f"I traveled through time with {APP_NAME}! Check out my album.",
        data=data,
    )


Sharer = Callable[[ShareBundle], None]


def share_bundle(bundle: ShareBundle, sharer: Sharer) -> bool:
    """Hand ``bundle`` to ``sharer``.

    Returns:
        ``True`` if the share completed, ``False`` if the user cancelled.

    Raises:
        ShareFailure: If the sharer failed for any other reason.
    """
    try:
        sharer(bundle)
    except ShareCancelled:
        logger.debug("Share of %s cancelled by the user.", bundle.filename)
        return False
    except Exception as exc:
        logger.error("Error sharing %s: %s", bundle.filename, exc)
        raise ShareFailure(f"Sorry, there was an error sharing {bundle.filename}.") from exc
    logger.info("Shared %s.", bundle.filename)
    return True
