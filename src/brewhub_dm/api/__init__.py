"""HTTP API for the messaging service."""
