"""Rural Bites floor-service ordering and billing backend."""

__version__ = "0.3.0"
