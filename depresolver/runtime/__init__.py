"""Runtime helpers for loading resolver settings."""
