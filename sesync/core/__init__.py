"""Core modules for SE-Sync."""
