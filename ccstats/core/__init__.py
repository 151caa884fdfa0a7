"""Configuration, constants, and error types."""
