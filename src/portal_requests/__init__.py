"""Portal Requests: service-desk portal request listing and settings service."""

__version__ = "1.0.0"
