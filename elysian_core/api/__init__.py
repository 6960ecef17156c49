"""API package for the inference engine."""

from .routes import get_engine, router

__all__ = ["get_engine", "router"]
