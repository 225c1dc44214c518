"""Persistence: ORM models, sessions and the history repository."""
