"""API routes for the folder store."""
