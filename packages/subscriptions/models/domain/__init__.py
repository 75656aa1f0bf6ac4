"""Domain models for subscriptions."""
