"""Module executed when running ``python -m quote_wizard``."""

from __future__ import annotations

from .api import main as serve


def main() -> None:
    """Start the HTTP server."""

    serve()


if __name__ == "__main__":  # pragma: no cover - runtime hook
    main()
