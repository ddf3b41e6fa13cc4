"""Album compositor: lay out every decade image on one flattened JPEG.

Composition is split in two steps:

1. :func:`plan_album` — a pure geometric plan.  Each catalog decade gets a
   fixed-size polaroid frame in a two-column grid; row and column follow the
   decade's catalog position.  The canvas size depends only on the number of
   decades and the layout constants below, never on the input images.
2. :func:`render_album` — draws the plan with Pillow: title header once,
   then for every frame a drop shadow, a white frame, the cover-fitted photo,
   and the caption.

:func:`compose_album` wraps both, refuses incomplete input with
:class:`~pastforward.core.errors.MissingInputsError`, and converts any
rendering problem into :class:`~pastforward.core.errors.CompositionFailure`.

Frame geometry (pixels)::

    +------------------------------+   FRAME_BORDER on top and sides
    |  +------------------------+  |
    |  |                        |  |
    |  |   PHOTO_SIZE square    |  |
    |  |                        |  |
    |  +------------------------+  |
    |          caption             |   CAPTION_HEIGHT strip
    +------------------------------+
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path

from PIL import Image, ImageDraw, ImageFont

from .errors import CompositionFailure, MissingInputsError
from .images import cover_fit, encode_jpeg, open_image

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Layout constants.
# ---------------------------------------------------------------------------
COLUMNS = 2
FRAME_BORDER = 40
PHOTO_SIZE = 920
CAPTION_HEIGHT = 160
FRAME_WIDTH = PHOTO_SIZE + 2 * FRAME_BORDER
FRAME_HEIGHT = FRAME_BORDER + PHOTO_SIZE + CAPTION_HEIGHT
MARGIN = 160
COLUMN_GAP = 160
ROW_GAP = 100
HEADER_HEIGHT = 400
SHADOW_OFFSET = 16

TITLE = "Generated with Past Forward"
TITLE_FONT_SIZE = 110
CAPTION_FONT_SIZE = 72

BACKGROUND_COLOR = (253, 245, 230)
FRAME_COLOR = (255, 255, 255)
SHADOW_COLOR = (200, 190, 175)
TITLE_COLOR = (51, 51, 51)
CAPTION_COLOR = (34, 34, 34)


@dataclass(frozen=True)
class FrameSlot:
    """Placement of one decade's frame on the canvas.

    Attributes:
        decade: Catalog identifier.
        caption: Caption text to render.
        x: Left edge of the frame.
        y: Top edge of the frame.
    """

    decade: str
    caption: str
    x: int
    y: int

    @property
    def photo_box(self) -> tuple[int, int, int, int]:
        left = self.x + FRAME_BORDER
        top = self.y + FRAME_BORDER
        return (left, top, left + PHOTO_SIZE, top + PHOTO_SIZE)

    @property
    def caption_center(self) -> tuple[int, int]:
        return (self.x + FRAME_WIDTH // 2, self.y + FRAME_BORDER + PHOTO_SIZE + CAPTION_HEIGHT // 2)


@dataclass(frozen=True)
class AlbumLayout:
    width: int
    height: int
    title: str
    frames: tuple[FrameSlot, ...]

    def frame_for(self, decade: str) -> FrameSlot:
        for frame in self.frames:
            if frame.decade == decade:
                return frame
        raise KeyError(decade)


def canvas_size(count: int) -> tuple[int, int]:
    """Return the canvas size for ``count`` frames."""
    if count < 1:
        raise ValueError("An album needs at least one frame")
    rows = math.ceil(count / COLUMNS)
    width = 2 * MARGIN + COLUMNS * FRAME_WIDTH + (COLUMNS - 1) * COLUMN_GAP
    height = HEADER_HEIGHT + rows * FRAME_HEIGHT + (rows - 1) * ROW_GAP + MARGIN
    return width, height


def plan_album(decades: Sequence[str], captions: Mapping[str, str]) -> AlbumLayout:
    """Compute the deterministic album layout.

    Args:
        decades: Catalog identifiers in catalog order.
        captions: Caption per identifier; identifiers without a caption use
            the identifier itself.

    Returns:
        The full :class:`AlbumLayout`.
    """
    width, height = canvas_size(len(decades))
    frames = []
    for position, decade in enumerate(decades):
        row, column = divmod(position, COLUMNS)
        frames.append(
            FrameSlot(
                decade=decade,
                caption=captions.get(decade) or decade,
                x=MARGIN + column * (FRAME_WIDTH + COLUMN_GAP),
                y=HEADER_HEIGHT + row * (FRAME_HEIGHT + ROW_GAP),
            )
        )
    return AlbumLayout(width=width, height=height, title=TITLE, frames=tuple(frames))


def _load_font(size: int, font_path: Path | None) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
    if font_path is not None:
        return ImageFont.truetype(str(font_path), size)
    return ImageFont.load_default(size=size)


def _fit_text(draw: ImageDraw.ImageDraw, text: str, font, max_width: int) -> str:
    """Truncate ``text`` with an ellipsis until it fits ``max_width``."""
    if draw.textlength(text, font=font) <= max_width:
        return text
    ellipsis = "..."
    trimmed = text
    while trimmed and draw.textlength(trimmed + ellipsis, font=font) > max_width:
        trimmed = trimmed[:-1]
    return trimmed.rstrip() + ellipsis


def render_album(
    layout: AlbumLayout,
    images: Mapping[str, str | bytes],
    *,
    font_path: Path | None = None,
) -> Image.Image:
    """Draw ``layout`` onto a new RGB canvas."""
    canvas = Image.new("RGB", (layout.width, layout.height), BACKGROUND_COLOR)
    draw = ImageDraw.Draw(canvas)
    title_font = _load_font(TITLE_FONT_SIZE, font_path)
    caption_font = _load_font(CAPTION_FONT_SIZE, font_path)

    draw.text(
        (layout.width // 2, HEADER_HEIGHT // 2),
        layout.title,
        fill=TITLE_COLOR,
        font=title_font,
        anchor="mm",
    )

    for frame in layout.frames:
        photo = cover_fit(open_image(images[frame.decade]), (PHOTO_SIZE, PHOTO_SIZE))
        draw.rectangle(
            (
                frame.x + SHADOW_OFFSET,
                frame.y + SHADOW_OFFSET,
                frame.x + FRAME_WIDTH + SHADOW_OFFSET,
                frame.y + FRAME_HEIGHT + SHADOW_OFFSET,
            ),
            fill=SHADOW_COLOR,
        )
        draw.rectangle(
            (frame.x, frame.y, frame.x + FRAME_WIDTH, frame.y + FRAME_HEIGHT),
            fill=FRAME_COLOR,
        )
        canvas.paste(photo, frame.photo_box[:2])
        caption = _fit_text(draw, frame.caption, caption_font, PHOTO_SIZE)
        draw.text(frame.caption_center, caption, fill=CAPTION_COLOR, font=caption_font, anchor="mm")

    return canvas


def compose_album(
    images: Mapping[str, str | bytes],
    captions: Mapping[str, str],
    decades: Sequence[str],
    *,
    jpeg_quality: int = 90,
    font_path: Path | None = None,
) -> bytes:
    """Compose the album JPEG.

    Args:
        images: Image payload (data URL or raw bytes) per identifier.
        captions: Caption per identifier.
        decades: Every catalog identifier, in catalog order.
        jpeg_quality: JPEG quality of the output.
        font_path: Optional TrueType font for title and captions.

    Returns:
        The encoded JPEG bytes.

    Raises:
        MissingInputsError: If ``images`` lacks any identifier in ``decades``.
        CompositionFailure: If decoding, drawing, or encoding fails.
    """
    missing = [decade for decade in decades if not images.get(decade)]
    if missing:
        raise MissingInputsError(missing)

    layout = plan_album(decades, captions)
    try:
        canvas = render_album(layout, images, font_path=font_path)
        data = encode_jpeg(canvas, quality=jpeg_quality)
    except Exception as exc:
        logger.exception("Album composition failed.")
        raise CompositionFailure(f"Could not compose the album: {exc}") from exc

    logger.info(
        "Composed album of %d images (%dx%d, %d bytes).",
        len(decades),
        layout.width,
        layout.height,
        len(data),
    )
    return data
