"""Repository layer package."""

from ccstats.repositories.tag_repo import TagRepo
from ccstats.repositories.usage_repo import UsageRepo
from ccstats.repositories.user_repo import UserRepo

__all__ = [
    "TagRepo",
    "UsageRepo",
    "UserRepo",
]
