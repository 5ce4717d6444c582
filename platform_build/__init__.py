"""Platform build: sync, order and build many independently versioned modules."""

__version__ = "0.1.0"
