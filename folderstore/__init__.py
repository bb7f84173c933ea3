"""Multi-tenant hierarchical folder store."""
