"""Module entrypoint for ``python -m artifact_resolver``."""

from __future__ import annotations

from artifact_resolver.main import cli_entrypoint

if __name__ == "__main__":
    raise SystemExit(cli_entrypoint())
