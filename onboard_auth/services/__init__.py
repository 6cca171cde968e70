"""Integrations with services outside of this package."""
