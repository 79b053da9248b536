"""Command implementations for the depresolver CLI."""
