"""Entry point for `python -m quality_cli` and the `quality-core` console script."""

from __future__ import annotations

from quality_cli.app import app


def main() -> None:
    app()


if __name__ == "__main__":
    main()
