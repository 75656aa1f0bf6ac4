"""Domain models for the catalog."""
