"""HTTP adapter for the integrity service."""
