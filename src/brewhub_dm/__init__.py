"""BrewHub direct-messaging service."""
