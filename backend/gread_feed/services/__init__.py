"""Feed engine services."""
