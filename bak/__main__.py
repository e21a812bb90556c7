"""Allow ``python -m bak``."""

from __future__ import annotations

from bak.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
