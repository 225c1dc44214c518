"""Pure calculation domain: forecasting, replenishment, errors."""
