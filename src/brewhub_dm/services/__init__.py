"""Domain services for the direct-messaging subsystem."""
