"""Core configuration, path and version-control helpers for tasklog."""
