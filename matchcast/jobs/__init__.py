from . import build_predictions, maintenance, sync_fixtures  # noqa: F401

__all__ = ["build_predictions", "maintenance", "sync_fixtures"]
