#!/usr/bin/env python3
"""
main.py — Quick-start entry point.

Put tile sprites in ``assets/tiles/``, their colour map in
``assets/color_map.json``, drop images into ``images/`` and run:

    python main.py batch

Or convert a single image:

    python -m tile_mosaic.cli convert my_sprite.png
    python -m tile_mosaic.cli build-palette assets/tiles
"""

from tile_mosaic.cli import app

if __name__ == "__main__":
    app()
