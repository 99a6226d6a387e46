"""Command-line tests driven through Typer's CliRunner."""

from __future__ import annotations

import json
from pathlib import Path

import numpy as np
import pytest
from PIL import Image
from typer.testing import CliRunner

from tile_mosaic.cli import app
from tile_mosaic.config import TILE_SIZE

runner = CliRunner()


@pytest.fixture
def assets(tmp_path: Path) -> tuple[Path, Path]:
    """Tile folder with two sprites plus the matching colour map."""
    tiles = tmp_path / "tiles"
    tiles.mkdir()
    Image.new("RGBA", (TILE_SIZE, TILE_SIZE), (0, 0, 255, 255)).save(tiles / "water.png")
    Image.new("RGBA", (TILE_SIZE, TILE_SIZE), (0, 160, 0, 255)).save(tiles / "grass.png")
    palette = tmp_path / "color_map.json"
    palette.write_text(json.dumps([
        {"color": [0, 0, 255], "image": "water.png"},
        {"color": [0, 160, 0], "image": "grass.png"},
    ]))
    return palette, tiles


@pytest.fixture
def sprite(tmp_path: Path) -> Path:
    arr = np.zeros((2, 3, 4), dtype=np.uint8)
    arr[..., 2] = 240
    arr[..., 3] = 255
    arr[0, 0] = (10, 150, 10, 255)
    arr[1, 2, 3] = 0
    p = tmp_path / "sprite.png"
    Image.fromarray(arr).save(p)
    return p


class TestConvert:
    def test_writes_mosaic_and_usage(
        self, tmp_path: Path, assets: tuple[Path, Path], sprite: Path,
    ) -> None:
        palette, tiles = assets
        out = tmp_path / "out" / "sprite_mosaic.png"
        result = runner.invoke(app, [
            "convert", str(sprite), "-o", str(out),
            "--palette", str(palette), "--tiles", str(tiles),
        ])
        assert result.exit_code == 0, result.output
        assert Image.open(out).size == (3 * TILE_SIZE, 2 * TILE_SIZE)
        usage = (out.parent / "sprite_usage.txt").read_text().splitlines()
        assert usage == ["grass: 1", "water: 4"]

    def test_missing_palette_exits_nonzero(
        self, tmp_path: Path, assets: tuple[Path, Path], sprite: Path,
    ) -> None:
        _, tiles = assets
        result = runner.invoke(app, [
            "convert", str(sprite), "-o", str(tmp_path / "m.png"),
            "--palette", str(tmp_path / "missing.json"), "--tiles", str(tiles),
        ])
        assert result.exit_code == 1
        assert not (tmp_path / "m.png").exists()

    def test_no_tiles_available_exits_nonzero(
        self, tmp_path: Path, assets: tuple[Path, Path], sprite: Path,
    ) -> None:
        palette, _ = assets
        empty = tmp_path / "empty_tiles"
        empty.mkdir()
        result = runner.invoke(app, [
            "convert", str(sprite), "-o", str(tmp_path / "m.png"),
            "--palette", str(palette), "--tiles", str(empty),
        ])
        assert result.exit_code == 1


class TestBatch:
    def test_converts_folder(
        self, tmp_path: Path, assets: tuple[Path, Path], sprite: Path,
    ) -> None:
        palette, tiles = assets
        images = tmp_path / "images"
        images.mkdir()
        sprite.rename(images / "a.png")
        Image.new("RGB", (4, 1), (0, 0, 250)).save(images / "b.png")
        out = tmp_path / "results"
        result = runner.invoke(app, [
            "batch", "-i", str(images), "-o", str(out),
            "--palette", str(palette), "--tiles", str(tiles), "-w", "2",
        ])
        assert result.exit_code == 0, result.output
        assert (out / "a_mosaic.png").exists()
        assert Image.open(out / "b_mosaic.png").size == (4 * TILE_SIZE, TILE_SIZE)
        assert (out / "b_usage.txt").read_text() == "water: 4\n"

    def test_unreadable_image_does_not_stop_batch(
        self, tmp_path: Path, assets: tuple[Path, Path],
    ) -> None:
        palette, tiles = assets
        images = tmp_path / "images"
        images.mkdir()
        (images / "a_broken.png").write_bytes(b"not really a png")
        Image.new("RGB", (2, 1), (0, 0, 250)).save(images / "b.png")
        out = tmp_path / "results"
        result = runner.invoke(app, [
            "batch", "-i", str(images), "-o", str(out),
            "--palette", str(palette), "--tiles", str(tiles),
        ])
        assert result.exit_code == 0, result.output
        assert not (out / "a_broken_mosaic.png").exists()
        assert (out / "b_mosaic.png").exists()

    @pytest.mark.parametrize("workers", ["0", "-3"])
    def test_rejects_non_positive_workers(self, tmp_path: Path, workers: str) -> None:
        result = runner.invoke(app, ["batch", "-i", str(tmp_path), "-w", workers])
        assert result.exit_code == 2

    def test_empty_folder(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["batch", "-i", str(tmp_path / "none")])
        assert result.exit_code == 0


class TestBuildPalette:
    def test_writes_colour_map(
        self, tmp_path: Path, assets: tuple[Path, Path],
    ) -> None:
        _, tiles = assets
        generated = tmp_path / "generated.json"
        result = runner.invoke(app, ["build-palette", str(tiles), "-o", str(generated)])
        assert result.exit_code == 0, result.output
        records = json.loads(generated.read_text())
        assert records == [
            {"color": [0, 160, 0], "image": "grass.png"},
            {"color": [0, 0, 255], "image": "water.png"},
        ]

    def test_no_tiles(self, tmp_path: Path) -> None:
        empty = tmp_path / "empty"
        empty.mkdir()
        result = runner.invoke(app, ["build-palette", str(empty), "-o", str(tmp_path / "p.json")])
        assert result.exit_code == 1
