"""Recipe to priced shopping list service."""
