"""Entry point for `python -m mapper_engine.cli` and the `mapper-engine` console script."""

from __future__ import annotations

from mapper_engine.cli.app import app


def main() -> None:
    app()


if __name__ == "__main__":
    main()
