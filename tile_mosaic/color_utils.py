"""Nearest-colour tile matching in plain RGB space."""

from __future__ import annotations

import math
from collections.abc import Sequence

import numpy as np

from tile_mosaic.palette import PaletteEntry


def color_distance(c1: Sequence[int], c2: Sequence[int]) -> float:
    """Euclidean distance between two RGB triples."""
    return math.sqrt(
        (int(c1[0]) - int(c2[0])) ** 2
        + (int(c1[1]) - int(c2[1])) ** 2
        + (int(c1[2]) - int(c2[2])) ** 2
    )


def match_tile(r: int, g: int, b: int, palette: Sequence[PaletteEntry]) -> str | None:
    """Return the tile id whose colour is nearest to ``(r, g, b)``.

    Linear scan with a strict ``<`` against the running minimum, so when
    several entries are equally close the first one in palette order wins.
    Returns ``None`` for an empty palette.
    """
    closest = None
    min_distance = math.inf
    for entry in palette:
        distance = color_distance((r, g, b), entry.color)
        if distance < min_distance:
            min_distance = distance
            closest = entry.tile_id
    return closest


def palette_colors(palette: Sequence[PaletteEntry]) -> np.ndarray:
    """Stack palette colours into a (K, 3) int64 array."""
    if not palette:
        return np.empty((0, 3), dtype=np.int64)
    return np.array([e.color for e in palette], dtype=np.int64)


def match_indices(
    pixels: np.ndarray,
    palette: Sequence[PaletteEntry],
    chunk_size: int = 4096,
) -> np.ndarray:
    """Vectorised :func:`match_tile` over many pixels.

    Args:
        pixels: (N, 3) RGB values.
        palette: Ordered palette entries.
        chunk_size: Rows matched per batch (controls peak RAM).

    Returns:
        (N,) int64 palette indices, or all ``-1`` when the palette is empty.
    """
    colors = palette_colors(palette)
    n = len(pixels)
    result = np.full(n, -1, dtype=np.int64)
    if len(colors) == 0 or n == 0:
        return result

    rgb = pixels.reshape(-1, 3).astype(np.int64)
    for i in range(0, n, chunk_size):
        j = min(i + chunk_size, n)
        diff = rgb[i:j, np.newaxis, :] - colors[np.newaxis, :, :]
        # Integer squared distances keep ties exact; argmin picks the first.
        result[i:j] = np.argmin(np.sum(diff ** 2, axis=2), axis=1)
    return result
