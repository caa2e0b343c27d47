"""Use cases orchestrating receivers."""
