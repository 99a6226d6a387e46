"""Exception hierarchy for palette loading and mosaic conversion."""

from __future__ import annotations

from enum import Enum


class TileMosaicError(Exception):
    """Base class for every error raised by this package."""


class PaletteLoadError(TileMosaicError):
    """The palette source is unreachable or malformed."""


class TileNotFound(TileMosaicError):
    """No palette entry matched a colour (only possible with an empty palette)."""


class TileAssetLoadError(TileMosaicError):
    """A tile loader could not produce the bitmap for a tile id."""

    def __init__(self, tile_id: str, message: str) -> None:
        super().__init__(f"{tile_id}: {message}")
        self.tile_id = tile_id


class FailureReason(str, Enum):
    NO_MATCHES = "no_matches"


class ConversionFailure(TileMosaicError):
    """Whole-conversion failure: nothing could be placed in the mosaic."""

    def __init__(self, reason: FailureReason, message: str | None = None) -> None:
        super().__init__(message or f"Conversion failed: {reason.value}")
        self.reason = reason
