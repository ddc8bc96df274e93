"""HTTP API and background tasks."""
