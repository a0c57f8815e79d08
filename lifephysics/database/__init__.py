"""Persistence schema for cloud sync."""
