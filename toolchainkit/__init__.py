"""Manifest filtering, loading and template processing, username transformation and tier generation."""

__version__ = "0.1.0"