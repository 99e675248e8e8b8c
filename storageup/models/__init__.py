"""Models package exports."""

from storageup.models.user import User, UserRole, UserUpdate

__all__ = ["User", "UserRole", "UserUpdate"]
