"""Logging helpers shared across the package."""
