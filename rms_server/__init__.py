"""Local-first tournament event server: registry, admin setup and event provisioning."""

__version__ = "1.0.0"
