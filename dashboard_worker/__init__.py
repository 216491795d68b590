"""Run a notebook-derived dashboard in a sandboxed runtime worker and keep
a host view in sync with it through patches."""

__version__ = "0.1.0"
