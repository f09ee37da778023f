"""Chrome UX Report field-metrics acquisition and caching."""

__version__ = "0.1.0"
