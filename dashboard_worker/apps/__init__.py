"""Bundled dashboard applications."""
