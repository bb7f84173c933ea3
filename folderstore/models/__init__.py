"""API data models for the folder store."""
