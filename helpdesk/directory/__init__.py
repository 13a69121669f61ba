"""Reference data about branches and user accounts."""

from .models import Branch, UserAccount
from .repository import DirectoryRepository

__all__ = ["Branch", "DirectoryRepository", "UserAccount"]
