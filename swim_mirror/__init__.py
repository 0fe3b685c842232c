"""swim-mirror: exhaustive mirror of the USA Swimming Top Times database."""

__version__ = "0.1.0"
