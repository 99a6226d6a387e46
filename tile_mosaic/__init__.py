"""
Tile Mosaic
===========

Rebuild any image out of 16x16 tile sprites. Every opaque source pixel
is replaced by the tile whose palette colour is nearest in RGB, and a
usage summary records how often each tile was used.
"""

__version__ = "1.0.0"

from tile_mosaic.color_utils import color_distance, match_indices, match_tile
from tile_mosaic.compositor import MosaicResult, composite, format_usage, sorted_usage
from tile_mosaic.config import TILE_SIZE, MosaicConfig
from tile_mosaic.errors import (
    ConversionFailure,
    FailureReason,
    PaletteLoadError,
    TileAssetLoadError,
    TileMosaicError,
    TileNotFound,
)
from tile_mosaic.image_io import DirectoryTileLoader, load_source_image, save_mosaic
from tile_mosaic.palette import (
    PaletteEntry,
    PaletteState,
    PaletteStore,
    build_palette_from_tiles,
    parse_palette,
    read_palette,
    write_palette,
)

__all__ = [
    "TILE_SIZE",
    "ConversionFailure",
    "DirectoryTileLoader",
    "FailureReason",
    "MosaicConfig",
    "MosaicResult",
    "PaletteEntry",
    "PaletteLoadError",
    "PaletteState",
    "PaletteStore",
    "TileAssetLoadError",
    "TileMosaicError",
    "TileNotFound",
    "build_palette_from_tiles",
    "color_distance",
    "composite",
    "format_usage",
    "load_source_image",
    "match_indices",
    "match_tile",
    "parse_palette",
    "read_palette",
    "save_mosaic",
    "sorted_usage",
    "write_palette",
]
