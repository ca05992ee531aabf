"""User directory: identities, roles and profile lookups."""

from .models import User, UserRole
from .repository import UserRepository
from .service import UserService

__all__ = ["User", "UserRole", "UserRepository", "UserService"]
