"""Source-image decoding, tile bitmap loading, and mosaic saving."""

from __future__ import annotations

import logging
import threading
from pathlib import Path

import numpy as np
from PIL import Image

from tile_mosaic.config import TILE_SIZE
from tile_mosaic.errors import TileAssetLoadError

logger = logging.getLogger(__name__)


def to_rgba_array(image: Image.Image | np.ndarray) -> np.ndarray:
    """Normalise a PIL image or array to an (H, W, 4) uint8 RGBA array.

    Three-channel arrays are treated as fully opaque.
    """
    if isinstance(image, Image.Image):
        return np.array(image.convert("RGBA"), dtype=np.uint8)

    arr = np.asarray(image)
    if arr.ndim != 3 or arr.shape[2] not in (3, 4):
        msg = f"Expected an (H, W, 3) or (H, W, 4) array, got shape {arr.shape}"
        raise ValueError(msg)
    if arr.shape[0] == 0 or arr.shape[1] == 0:
        msg = f"Image dimensions must be positive, got {arr.shape[1]}x{arr.shape[0]}"
        raise ValueError(msg)
    arr = arr.astype(np.uint8, copy=False)
    if arr.shape[2] == 3:
        alpha = np.full(arr.shape[:2] + (1,), 255, dtype=np.uint8)
        arr = np.concatenate([arr, alpha], axis=2)
    return arr


def load_source_image(path: str | Path) -> np.ndarray:
    """Decode an image file into an (H, W, 4) uint8 RGBA array."""
    with Image.open(path) as img:
        return to_rgba_array(img)


class DirectoryTileLoader:
    """Load tile sprites from ``<tiles_dir>/<tile_id>``.

    Bitmaps are converted to RGBA and scaled to ``TILE_SIZE`` x ``TILE_SIZE``
    with nearest-neighbour sampling when the asset has another size. Decoded
    tiles are memoised, so the loader is cheap to share across conversions.
    Safe to call from several threads.
    """

    def __init__(self, tiles_dir: str | Path) -> None:
        self.tiles_dir = Path(tiles_dir)
        self._cache: dict[str, np.ndarray] = {}
        self._lock = threading.Lock()

    def __call__(self, tile_id: str) -> np.ndarray:
        with self._lock:
            cached = self._cache.get(tile_id)
        if cached is not None:
            return cached

        path = self.tiles_dir / tile_id
        try:
            with Image.open(path) as img:
                tile = img.convert("RGBA")
                if tile.size != (TILE_SIZE, TILE_SIZE):
                    logger.debug("Scaling tile %s from %s", tile_id, tile.size)
                    tile = tile.resize((TILE_SIZE, TILE_SIZE), Image.NEAREST)
                bitmap = np.array(tile, dtype=np.uint8)
        except (OSError, ValueError, Image.DecompressionBombError) as exc:
            raise TileAssetLoadError(tile_id, str(exc)) from exc

        bitmap.setflags(write=False)
        with self._lock:
            self._cache.setdefault(tile_id, bitmap)
        return bitmap


def save_mosaic(image: np.ndarray, path: str | Path) -> None:
    """Write an (H, W, 4) RGBA mosaic to disk."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.fromarray(image.astype(np.uint8)).save(path)
    logger.info("Mosaic saved: %s (%dx%d)", path, image.shape[1], image.shape[0])
