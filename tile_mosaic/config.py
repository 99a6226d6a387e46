"""Centralised configuration via a frozen dataclass."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

# Every tile is a square sprite of this many pixels per side.
TILE_SIZE = 16


@dataclass(frozen=True)
class MosaicConfig:
    """Defaults for a tile-mosaic run.

    Attributes:
        palette_path:     JSON colour map listing ``{"color", "image"}`` records.
        tiles_dir:        Folder holding the tile sprites named in the palette.
        input_dir:        Folder scanned by the ``batch`` command.
        output_dir:       Folder for results.
        max_workers:      Threads used to fetch tile bitmaps concurrently.
        match_chunk_size: Pixels matched per vectorised batch (controls peak RAM).
        output_format:    Image format for saved mosaics.
        save_usage:       Also write a ``<stem>_usage.txt`` summary.
    """

    # Assets
    palette_path: Path = field(default_factory=lambda: Path("assets/color_map.json"))
    tiles_dir: Path = field(default_factory=lambda: Path("assets/tiles"))

    # Matching / compositing
    max_workers: int = 8
    match_chunk_size: int = 4096

    # Output
    output_format: str = "png"
    save_usage: bool = True

    # Paths
    input_dir: Path = field(default_factory=lambda: Path("images"))
    output_dir: Path = field(default_factory=lambda: Path("output"))

    SUPPORTED_EXTENSIONS: frozenset[str] = frozenset(
        {".jpg", ".jpeg", ".png", ".bmp", ".gif", ".tiff", ".tif", ".webp"}
    )
