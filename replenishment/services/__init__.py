"""Service layer: cache-first coverage, purchase batches, scenarios."""
