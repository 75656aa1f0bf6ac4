"""Shared infrastructure: settings, telemetry, errors and database access."""
