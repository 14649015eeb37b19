"""Bundled sample catalog and evaluation records."""
