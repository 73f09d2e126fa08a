"""HTTP service mode."""

from .app import create_app, create_app_from_config, run_service

__all__ = ["create_app", "create_app_from_config", "run_service"]
