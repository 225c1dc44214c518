"""Configuration, logging and metrics."""
