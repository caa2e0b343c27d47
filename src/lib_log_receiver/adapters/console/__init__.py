"""Rich console output."""
