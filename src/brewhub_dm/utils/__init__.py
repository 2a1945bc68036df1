"""Utility helpers shared across the messaging services."""
