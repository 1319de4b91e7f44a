"""Module entrypoint for ``python -m contextsmith``."""

from __future__ import annotations

from contextsmith.main import cli_entrypoint

if __name__ == "__main__":
    raise SystemExit(cli_entrypoint())
