"""Rich command-line interface powered by Typer."""

from __future__ import annotations

import logging
import time
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from tile_mosaic.compositor import MosaicResult, composite, format_usage
from tile_mosaic.config import TILE_SIZE, MosaicConfig
from tile_mosaic.errors import ConversionFailure, PaletteLoadError
from tile_mosaic.image_io import DirectoryTileLoader, load_source_image, save_mosaic
from tile_mosaic.palette import PaletteStore, build_palette_from_tiles, write_palette

app = typer.Typer(
    name="tile-mosaic",
    help="Rebuild images out of 16x16 tile sprites.",
    add_completion=False,
    rich_markup_mode="rich",
)
console = Console()


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False, markup=True)],
    )


def _collect_images(folder: Path, extensions: frozenset[str]) -> list[Path]:
    if not folder.exists():
        return []
    return sorted(
        f for f in folder.iterdir()
        if f.is_file() and f.suffix.lower() in extensions
    )


def _load_palette(palette_path: Path) -> PaletteStore:
    store = PaletteStore()
    try:
        store.load(palette_path)
    except PaletteLoadError as exc:
        console.print(f"[red]Could not load palette:[/red] {exc}")
        raise typer.Exit(1) from exc
    return store


def _usage_table(result: MosaicResult) -> Table:
    table = Table(title="Tile usage", show_header=True, header_style="bold cyan")
    table.add_column("Tile")
    table.add_column("Count", justify="right")
    for tile_id, count in result.sorted_usage():
        table.add_row(tile_id, str(count))
    return table


def _write_usage(result: MosaicResult, path: Path) -> None:
    path.write_text("\n".join(format_usage(result.usage)) + "\n", encoding="utf-8")


# Defaults come from MosaicConfig - single source of truth
_DEFAULTS = MosaicConfig()


# -- convert command ---------------------------------------------------

@app.command()
def convert(
    source: Path = typer.Argument(..., help="Image to rebuild out of tiles"),
    output: Path | None = typer.Option(
        None, "--output", "-o", help="Mosaic path (default: OUTPUT_DIR/<name>_mosaic.png)",
    ),
    palette_path: Path = typer.Option(
        _DEFAULTS.palette_path, "--palette", "-p", help="JSON colour map",
    ),
    tiles_dir: Path = typer.Option(
        _DEFAULTS.tiles_dir, "--tiles", "-t", help="Folder with tile sprites",
    ),
    workers: int = typer.Option(
        _DEFAULTS.max_workers, "--workers", "-w", min=1, help="Tile loading threads",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Convert a single image."""
    _setup_logging(verbose)

    if output is None:
        output = _DEFAULTS.output_dir / f"{source.stem}_mosaic.{_DEFAULTS.output_format}"

    store = _load_palette(palette_path)
    loader = DirectoryTileLoader(tiles_dir)

    try:
        img = load_source_image(source)
    except OSError as exc:
        console.print(f"[red]Could not read image:[/red] {exc}")
        raise typer.Exit(1) from exc

    try:
        result = composite(img, store, loader, max_workers=workers,
                           chunk_size=_DEFAULTS.match_chunk_size)
    except ConversionFailure as exc:
        console.print(f"[red]No mosaic produced:[/red] {exc}")
        raise typer.Exit(1) from exc

    save_mosaic(result.image, output)
    if _DEFAULTS.save_usage:
        _write_usage(result, output.with_name(f"{source.stem}_usage.txt"))

    console.print(_usage_table(result))
    h, w = result.image.shape[:2]
    console.print(
        f"[green]✓[/green] Saved to {output}  "
        f"[dim]{w}x{h} px  placed={result.placed}  "
        f"transparent={result.transparent}  failed={result.failed}[/dim]"
    )


# -- batch command -----------------------------------------------------

@app.command()
def batch(
    input_dir: Path = typer.Option(
        _DEFAULTS.input_dir, "--input", "-i", help="Folder with source images",
    ),
    output_dir: Path = typer.Option(
        _DEFAULTS.output_dir, "--output", "-o", help="Results folder",
    ),
    palette_path: Path = typer.Option(
        _DEFAULTS.palette_path, "--palette", "-p", help="JSON colour map",
    ),
    tiles_dir: Path = typer.Option(
        _DEFAULTS.tiles_dir, "--tiles", "-t", help="Folder with tile sprites",
    ),
    workers: int = typer.Option(
        _DEFAULTS.max_workers, "--workers", "-w", min=1, help="Tile loading threads",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Convert every image in INPUT_DIR and write results to OUTPUT_DIR."""
    _setup_logging(verbose)
    logger = logging.getLogger("tile_mosaic")

    cfg = MosaicConfig(
        palette_path=palette_path,
        tiles_dir=tiles_dir,
        max_workers=workers,
        input_dir=input_dir,
        output_dir=output_dir,
    )

    images = _collect_images(input_dir, cfg.SUPPORTED_EXTENSIONS)
    if not images:
        console.print(f"\n[yellow]No images found in {input_dir}/[/yellow]")
        console.print("Place .png / .gif / ... files there and re-run.\n")
        raise typer.Exit(0)

    output_dir.mkdir(parents=True, exist_ok=True)
    store = _load_palette(cfg.palette_path)
    loader = DirectoryTileLoader(cfg.tiles_dir)

    console.print(Panel.fit(
        f"[bold]TILE MOSAIC[/bold]\n"
        f"Palette: {cfg.palette_path} ({len(store)} tiles)\n"
        f"Tiles: {cfg.tiles_dir}  |  Tile size: {TILE_SIZE}px\n"
        f"Workers: {cfg.max_workers}  |  Images: {len(images)}",
        border_style="cyan",
    ))

    failures = 0
    for idx, img_path in enumerate(images, 1):
        stem = img_path.stem
        console.rule(f"[bold cyan][{idx}/{len(images)}] {img_path.name}[/bold cyan]")
        t_total = time.perf_counter()

        try:
            img = load_source_image(img_path)
        except OSError as exc:
            failures += 1
            console.print(f"  [red]✗[/red] {img_path.name}: {exc}")
            continue
        logger.info("Source: %dx%d", img.shape[1], img.shape[0])

        try:
            result = composite(img, store, loader, max_workers=cfg.max_workers,
                               chunk_size=cfg.match_chunk_size)
        except ConversionFailure as exc:
            failures += 1
            console.print(f"  [red]✗[/red] {img_path.name}: {exc}")
            continue

        mosaic_path = output_dir / f"{stem}_mosaic.{cfg.output_format}"
        save_mosaic(result.image, mosaic_path)
        if cfg.save_usage:
            _write_usage(result, output_dir / f"{stem}_usage.txt")

        elapsed = time.perf_counter() - t_total
        console.print(
            f"  [green]✓[/green] {mosaic_path.name}  "
            f"[dim]{len(result.usage)} tiles  placed={result.placed}"
            f"  time={elapsed:.1f}s[/dim]"
        )

    console.print(Panel.fit(
        f"[bold green]ALL DONE[/bold green] - results in [bold]{output_dir}/[/bold]"
        + (f"\n[red]{failures} image(s) produced no mosaic[/red]" if failures else ""),
        border_style="green",
    ))


# -- build-palette command ---------------------------------------------

@app.command("build-palette")
def build_palette(
    tiles_dir: Path = typer.Argument(..., help="Folder with tile sprites"),
    output: Path = typer.Option(
        _DEFAULTS.palette_path, "--output", "-o", help="Where to write the colour map",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Derive a colour map from the mean colour of each tile."""
    _setup_logging(verbose)

    try:
        entries = build_palette_from_tiles(tiles_dir)
    except PaletteLoadError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(1) from exc

    if not entries:
        console.print(f"[yellow]No usable tiles found in {tiles_dir}/[/yellow]")
        raise typer.Exit(1)

    output.parent.mkdir(parents=True, exist_ok=True)
    write_palette(entries, output)
    console.print(f"[green]✓[/green] Wrote {len(entries)} entries to {output}")


if __name__ == "__main__":
    app()
