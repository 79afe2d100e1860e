"""Flask blueprints for auxiliary API routes."""

from __future__ import annotations

__all__ = [
    "uploads_bp",
]

from .uploads import uploads_bp  # noqa: E402  # import after defining __all__
