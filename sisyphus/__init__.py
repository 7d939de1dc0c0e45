"""Sisyphus: a label-driven single-lane merge queue for GitHub."""

__version__ = "0.1.0"
