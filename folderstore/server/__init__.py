"""Folder store service."""
