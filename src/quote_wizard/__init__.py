"""AI quote wizard: clarifying interview followed by a tiered price quote."""

from __future__ import annotations

from typing import Optional, Sequence

__all__ = ["run_server"]


def run_server(argv: Optional[Sequence[str]] = None) -> None:
    """Proxy to :func:`quote_wizard.api.main` for convenience."""

    from .api import main as _main_impl

    _main_impl(argv)
