"""Command-line client for the recipe to shopping list service."""

from .client import ApiError, ClientConfig, PanierClient

__all__ = ["ApiError", "ClientConfig", "PanierClient"]
