"""Coverage result caching."""
