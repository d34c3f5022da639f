"""Celery task modules for the Dorfladen ledger."""

# Import submodules so Celery autodiscovery registers tasks.
from . import badges as _badges  # noqa: F401

__all__ = ["_badges"]
