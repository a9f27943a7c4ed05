"""FastAPI surface for the KidSavings trigger points."""
from __future__ import annotations

from .application import RecalculationInProgressError, create_app

__all__ = ["RecalculationInProgressError", "create_app"]
