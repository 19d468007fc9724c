"""
Module entrypoint for the Vision Board CLI.

This file exists so that `python -m visionboard ...` works consistently in all
environments, including when the console-script wrapper is not installed.
"""

from __future__ import annotations

from visionboard.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
