"""Mosaic assembly: match every opaque pixel and paste its tile."""

from __future__ import annotations

import functools
import locale
import logging
import time
from collections.abc import Callable, Mapping, Sequence
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass

import numpy as np
from PIL import Image

from tile_mosaic.color_utils import match_indices
from tile_mosaic.config import TILE_SIZE
from tile_mosaic.errors import ConversionFailure, FailureReason, TileAssetLoadError
from tile_mosaic.image_io import to_rgba_array
from tile_mosaic.palette import PaletteEntry, PaletteStore

logger = logging.getLogger(__name__)

TileLoader = Callable[[str], np.ndarray]


def sorted_usage(usage: Mapping[str, int]) -> list[tuple[str, int]]:
    """Usage pairs ordered by tile id, ascending, using locale collation."""
    key = functools.cmp_to_key(locale.strcoll)
    return sorted(usage.items(), key=lambda item: key(item[0]))


def format_usage(usage: Mapping[str, int]) -> list[str]:
    """Summary lines such as ``"grass: 5"`` in display order."""
    return [
        f"{tile_id.removesuffix('.png')}: {count}"
        for tile_id, count in sorted_usage(usage)
    ]


@dataclass(frozen=True)
class MosaicResult:
    """A finished mosaic and its bookkeeping.

    Attributes:
        image:       (H*16, W*16, 4) uint8 RGBA; skipped blocks stay transparent.
        usage:       Tile id -> number of pixels rendered with that tile.
        placed:      Pixels that received a tile.
        transparent: Pixels skipped because alpha was 0.
        unmatched:   Opaque pixels with no palette entry to match.
        failed:      Pixels whose tile bitmap could not be loaded.
    """

    image: np.ndarray
    usage: dict[str, int]
    placed: int
    transparent: int
    unmatched: int
    failed: int

    def sorted_usage(self) -> list[tuple[str, int]]:
        return sorted_usage(self.usage)

    def to_image(self) -> Image.Image:
        return Image.fromarray(self.image)


def _resolve_palette(
    palette: PaletteStore | Sequence[PaletteEntry],
) -> tuple[PaletteEntry, ...]:
    if isinstance(palette, PaletteStore):
        return palette.entries
    return tuple(palette)


def _fetch_tiles(
    tile_ids: Sequence[str],
    tile_loader: TileLoader,
    max_workers: int | None,
) -> dict[str, np.ndarray]:
    """Load every tile concurrently and wait for all of them.

    Tiles whose loader fails, or that come back with the wrong shape, are
    left out of the returned mapping.
    """
    futures: dict[str, Future[np.ndarray]] = {}
    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        for tile_id in tile_ids:
            futures[tile_id] = pool.submit(tile_loader, tile_id)
    # Leaving the pool joins every task.

    bitmaps: dict[str, np.ndarray] = {}
    for tile_id, future in futures.items():
        try:
            bitmap = np.asarray(future.result())
        except TileAssetLoadError as exc:
            logger.warning("Tile asset failed to load: %s", exc)
            continue
        except Exception as exc:
            logger.warning("Tile loader raised for %s: %s", tile_id, exc, exc_info=exc)
            continue
        if bitmap.shape != (TILE_SIZE, TILE_SIZE, 4):
            logger.warning(
                "Tile %s has shape %s, expected (%d, %d, 4)",
                tile_id, bitmap.shape, TILE_SIZE, TILE_SIZE,
            )
            continue
        bitmaps[tile_id] = bitmap
    return bitmaps


def composite(
    source: Image.Image | np.ndarray,
    palette: PaletteStore | Sequence[PaletteEntry],
    tile_loader: TileLoader,
    *,
    max_workers: int | None = None,
    chunk_size: int = 4096,
) -> MosaicResult:
    """Rebuild *source* out of palette tiles.

    Every opaque pixel (alpha > 0) is replaced by the ``TILE_SIZE`` square
    tile whose palette colour is nearest in RGB. Transparent pixels, pixels
    with no match and pixels whose tile fails to load leave their block
    transparent and are not counted.

    Args:
        source:      PIL image or (H, W, 3|4) uint8 array.
        palette:     Loaded :class:`PaletteStore` or ordered entries.
        tile_loader: Callable returning a (16, 16, 4) uint8 bitmap for a tile
            id, raising :class:`TileAssetLoadError` on failure.
        max_workers: Threads used for tile loading (``None`` = executor default).
        chunk_size:  Pixels matched per vectorised batch.

    Returns:
        The assembled :class:`MosaicResult`.

    Raises:
        ConversionFailure: if not a single pixel could be placed.
    """
    rgba = to_rgba_array(source)
    h, w = rgba.shape[:2]
    entries = _resolve_palette(palette)
    t0 = time.perf_counter()

    # Row-major flattening: index = y * w + x
    flat = rgba.reshape(-1, 4)
    opaque_pos = np.flatnonzero(flat[:, 3] != 0)
    transparent = h * w - len(opaque_pos)

    indices = match_indices(flat[opaque_pos, :3], entries, chunk_size=chunk_size)
    matched = indices >= 0
    unmatched = int(np.count_nonzero(~matched))
    if unmatched:
        logger.warning(
            "No tile found for %d pixel(s); the palette is empty", unmatched,
        )

    # Group pixel positions by tile id (several entries may share a tile)
    positions: dict[str, list[np.ndarray]] = {}
    matched_pos = opaque_pos[matched]
    matched_idx = indices[matched]
    for palette_idx in np.unique(matched_idx):
        tile_id = entries[palette_idx].tile_id
        positions.setdefault(tile_id, []).append(matched_pos[matched_idx == palette_idx])
    logger.info(
        "Matched %d pixel(s) of %dx%d image to %d tile(s)  (%.2f s)",
        len(matched_pos), w, h, len(positions), time.perf_counter() - t0,
    )

    bitmaps = _fetch_tiles(list(positions), tile_loader, max_workers)

    image = np.zeros((h * TILE_SIZE, w * TILE_SIZE, 4), dtype=np.uint8)
    # View with one axis pair per grid cell: blocks[y, :, x, :] is cell (x, y)
    blocks = image.reshape(h, TILE_SIZE, w, TILE_SIZE, 4)
    usage: dict[str, int] = {}
    failed = 0
    for tile_id, parts in positions.items():
        pos = np.sort(np.concatenate(parts))
        bitmap = bitmaps.get(tile_id)
        if bitmap is None:
            failed += len(pos)
            continue
        ys, xs = np.divmod(pos, w)
        blocks[ys, :, xs, :] = bitmap
        usage[tile_id] = len(pos)

    placed = sum(usage.values())
    if failed:
        logger.warning("%d pixel(s) skipped because their tile failed to load", failed)
    if placed == 0:
        raise ConversionFailure(
            FailureReason.NO_MATCHES,
            f"No pixels of the {w}x{h} image could be matched to a tile",
        )

    logger.info(
        "Mosaic %dx%d built: %d placed, %d transparent  (%.2f s)",
        w * TILE_SIZE, h * TILE_SIZE, placed, transparent, time.perf_counter() - t0,
    )
    return MosaicResult(
        image=image,
        usage=usage,
        placed=placed,
        transparent=transparent,
        unmatched=unmatched,
        failed=failed,
    )
