"""Pydantic request and response models for the Past Forward API.

These models define the JSON schema for every API endpoint.  FastAPI uses
them for automatic request validation, serialisation, and OpenAPI
documentation generation.

Models
------
PhotoRequest
    Payload for ``POST /api/photo`` — the uploaded photo as a data URL.
CaptionRequest
    Payload for ``PUT /api/decades/{decade}/caption`` — sets or clears a
    caption override.
DecadeResult / ResultsResponse
    Per-decade state returned by ``GET /api/results`` and the mutating
    endpoints.
ShareResponse
    Share-sheet payload returned by the ``/share`` endpoints.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class PhotoRequest(BaseModel):
    """Request body for the ``POST /api/photo`` endpoint.

    Attributes:
        image: Photo encoded as a base64 ``data:`` URL, exactly as produced
            by a browser ``FileReader.readAsDataURL`` call.
    """

    image: str = Field(
        ...,
        min_length=1,
        description="Photo as a base64 data URL (data:image/jpeg;base64,...).",
    )


class CaptionRequest(BaseModel):
    """Request body for the ``PUT /api/decades/{decade}/caption`` endpoint.

    Attributes:
        caption: New caption override, or ``None`` to fall back to the
            decade label.
    """

    caption: str | None = Field(
        default=None,
        max_length=120,
        description="Caption override, or null to clear it.",
    )


class DecadeResult(BaseModel):
    """State of one decade.

    Attributes:
        decade: Catalog identifier.
        label: Display label.
        status: ``pending``, ``done``, or ``error``.  Decades that have not
            been started yet report ``pending``.
        image: Generated image as a data URL (``done`` only).
        error: Failure message (``error`` only).
        caption: Caption override, if one is set.
    """

    decade: str
    label: str
    status: str
    image: str | None = None
    error: str | None = None
    caption: str | None = None


class ResultsResponse(BaseModel):
    """Snapshot of every decade in catalog order.

    Attributes:
        has_photo: Whether a photo is uploaded.
        generating: Whether a batch is running.
        album_ready: Whether every decade is done.
        decades: One :class:`DecadeResult` per catalog decade.
    """

    has_photo: bool
    generating: bool
    album_ready: bool
    decades: list[DecadeResult]


class RegenerateResponse(BaseModel):
    """Response of ``POST /api/decades/{decade}/regenerate``.

    Attributes:
        regenerated: ``False`` when the decade was already pending and the
            request was ignored.
        result: State of the decade after the request.
    """

    regenerated: bool
    result: DecadeResult


class ShareResponse(BaseModel):
    """Everything the browser needs to call ``navigator.share``."""

    filename: str
    title: str
    text: str
    mime_type: str
    data_url: str
