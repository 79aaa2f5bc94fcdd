"""Version information for resource-locker."""

__version__ = "1.0.0"
