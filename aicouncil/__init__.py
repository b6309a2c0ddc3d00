"""AI Council backend: four-agent councils, per-user memories and usage tracking."""

__version__ = "0.1.0"
