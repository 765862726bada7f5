"""Ingredient-to-product matching core: filtering, compatibility, pricing and orchestration.

Modules here stay free of FastAPI and settings so the service and the client
preview share one implementation.
"""
