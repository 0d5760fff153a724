"""Punto de entrada: python -m diet_tracker."""

from __future__ import annotations

from diet_tracker.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
