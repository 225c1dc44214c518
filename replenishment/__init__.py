"""Stock coverage forecasting and purchase requirement engine."""

__version__ = "0.1.0"
