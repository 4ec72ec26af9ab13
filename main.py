#!/usr/bin/env python3
"""
main.py — Quick-start entry point.

Drop images into ``images/`` and run:

    python main.py batch

Or optimize files in place:

    python -m lossy_png.cli compress photo.png -s 30
"""

from lossy_png.cli import app

if __name__ == "__main__":
    app()
