"""Palette store: ordered colour -> tile mappings, loaded once per session."""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

import numpy as np
from PIL import Image

from tile_mosaic.errors import PaletteLoadError

logger = logging.getLogger(__name__)

RGB = tuple[int, int, int]


@dataclass(frozen=True)
class PaletteEntry:
    """One tile and the colour it stands for."""

    color: RGB
    tile_id: str


class PaletteState(Enum):
    UNINITIALIZED = "uninitialized"
    LOADED = "loaded"
    FAILED = "failed"


# -- Parsing -----------------------------------------------------------


def _parse_component(value: Any, where: str) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        msg = f"{where}: colour component {value!r} is not numeric"
        raise PaletteLoadError(msg)
    if isinstance(value, float) and not value.is_integer():
        msg = f"{where}: colour component {value!r} is not a whole number"
        raise PaletteLoadError(msg)
    if not 0 <= value <= 255:
        msg = f"{where}: colour component {value!r} is outside 0-255"
        raise PaletteLoadError(msg)
    return int(value)


def _parse_record(record: Any, index: int) -> PaletteEntry:
    where = f"palette record {index}"
    if not isinstance(record, Mapping):
        msg = f"{where}: expected an object, got {type(record).__name__}"
        raise PaletteLoadError(msg)
    if "color" not in record or "image" not in record:
        msg = f"{where}: missing 'color' or 'image' field"
        raise PaletteLoadError(msg)

    color = record["color"]
    if isinstance(color, (str, bytes)) or not isinstance(color, Sequence) or len(color) != 3:
        msg = f"{where}: 'color' must be a list of three numbers"
        raise PaletteLoadError(msg)

    tile_id = record["image"]
    if not isinstance(tile_id, str) or not tile_id:
        msg = f"{where}: 'image' must be a non-empty string"
        raise PaletteLoadError(msg)

    r, g, b = (_parse_component(c, where) for c in color)
    return PaletteEntry(color=(r, g, b), tile_id=tile_id)


def parse_palette(records: Any) -> tuple[PaletteEntry, ...]:
    """Validate decoded palette records into an ordered entry tuple.

    Each record looks like ``{"color": [r, g, b], "image": "grass.png"}``.
    A single malformed record invalidates the whole palette.

    Raises:
        PaletteLoadError: if *records* is not a list of well-formed records.
    """
    if isinstance(records, (str, bytes, Mapping)) or not isinstance(records, Sequence):
        msg = f"Palette must be a list of records, got {type(records).__name__}"
        raise PaletteLoadError(msg)
    return tuple(_parse_record(rec, i) for i, rec in enumerate(records))


def read_palette(path: str | Path) -> tuple[PaletteEntry, ...]:
    """Read and validate a JSON palette file."""
    path = Path(path)
    try:
        with path.open(encoding="utf-8") as fh:
            records = json.load(fh)
    except OSError as exc:
        msg = f"Cannot read palette {path}: {exc}"
        raise PaletteLoadError(msg) from exc
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        msg = f"Palette {path} is not valid JSON: {exc}"
        raise PaletteLoadError(msg) from exc
    return parse_palette(records)


def write_palette(entries: Sequence[PaletteEntry], path: str | Path) -> None:
    """Serialise *entries* to the JSON shape :func:`read_palette` accepts."""
    records = [{"color": list(e.color), "image": e.tile_id} for e in entries]
    Path(path).write_text(json.dumps(records, indent=2) + "\n", encoding="utf-8")


# -- Store -------------------------------------------------------------


class PaletteStore:
    """Explicitly initialised, read-only-after-load palette holder.

    The store is loaded at most once. Later calls to :meth:`load` (including
    concurrent ones) see the first load's outcome. A failed load leaves the
    store empty, so every match against it finds no tile.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._state = PaletteState.UNINITIALIZED
        self._entries: tuple[PaletteEntry, ...] = ()
        self._error: PaletteLoadError | None = None

    @property
    def state(self) -> PaletteState:
        return self._state

    @property
    def entries(self) -> tuple[PaletteEntry, ...]:
        return self._entries

    @property
    def error(self) -> PaletteLoadError | None:
        return self._error

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[PaletteEntry]:
        return iter(self._entries)

    def load(self, source: str | Path | Sequence[Mapping[str, Any]]) -> tuple[PaletteEntry, ...]:
        """Populate the store from a JSON file path or decoded records.

        Raises:
            PaletteLoadError: if this load (or the earlier one that won) failed.
        """
        with self._lock:
            if self._state is PaletteState.LOADED:
                logger.debug("Palette already loaded; ignoring %r", source)
                return self._entries
            if self._state is PaletteState.FAILED:
                msg = f"Palette load already failed: {self._error}"
                raise PaletteLoadError(msg)

            try:
                if isinstance(source, (str, Path)):
                    entries = read_palette(source)
                else:
                    entries = parse_palette(source)
            except PaletteLoadError as exc:
                self._state = PaletteState.FAILED
                self._error = exc
                logger.error("Palette load failed: %s", exc)
                raise

            self._entries = entries
            self._state = PaletteState.LOADED
            logger.info("Palette loaded (%d tiles)", len(entries))
            return entries


# -- Derive from tile images -------------------------------------------


def _mean_opaque_color(rgba: np.ndarray) -> RGB | None:
    opaque = rgba[..., 3] != 0
    if not np.any(opaque):
        return None
    mean = rgba[..., :3][opaque].astype(np.float64).mean(axis=0)
    r, g, b = (int(c) for c in np.rint(mean))
    return (r, g, b)


def build_palette_from_tiles(
    tiles_dir: str | Path,
    extensions: frozenset[str] = frozenset({".png", ".gif", ".bmp", ".webp"}),
) -> tuple[PaletteEntry, ...]:
    """Derive a palette from a folder of tile sprites.

    Each tile's representative colour is the mean of its non-transparent
    pixels. Fully transparent or undecodable files are skipped. Entries are
    ordered by filename.

    Args:
        tiles_dir: Folder containing the tile images.
        extensions: File suffixes treated as tiles.

    Returns:
        Ordered palette entries keyed by tile filename.
    """
    tiles_dir = Path(tiles_dir)
    if not tiles_dir.is_dir():
        msg = f"Tile folder {tiles_dir} does not exist"
        raise PaletteLoadError(msg)

    entries: list[PaletteEntry] = []
    for path in sorted(tiles_dir.iterdir()):
        if not path.is_file() or path.suffix.lower() not in extensions:
            continue
        try:
            with Image.open(path) as img:
                rgba = np.array(img.convert("RGBA"), dtype=np.uint8)
        except OSError as exc:
            logger.warning("Skipping unreadable tile %s: %s", path.name, exc)
            continue
        color = _mean_opaque_color(rgba)
        if color is None:
            logger.debug("Skipping fully transparent tile %s", path.name)
            continue
        entries.append(PaletteEntry(color=color, tile_id=path.name))

    logger.info("Derived %d palette entries from %s", len(entries), tiles_dir)
    return tuple(entries)
