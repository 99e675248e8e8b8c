"""StorageUp backend: identities, sessions and access control."""

__version__ = "0.1.0"
