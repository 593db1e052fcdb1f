"""CraftDesk: registry resolution and integrity verification for crafts."""

__version__ = "0.1.0"
