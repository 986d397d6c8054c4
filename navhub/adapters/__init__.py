"""Adapters for external systems: the sync storage service."""
