"""Policy and infrastructure template indexing service."""

__version__ = "0.1.0"
