"""Configuration, errors, clocks and logging shared by the service."""
