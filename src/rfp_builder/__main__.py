"""Module executed when running ``python -m rfp_builder``."""

from __future__ import annotations

from .cli import run_cli


def main() -> None:
    run_cli()


if __name__ == "__main__":  # pragma: no cover - runtime hook
    main()
