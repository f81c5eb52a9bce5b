"""Schedule engine and project services."""
