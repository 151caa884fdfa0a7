"""Database models package exports."""

from ccstats.db.models.model_usage import ModelUsage
from ccstats.db.models.tag import Tag
from ccstats.db.models.usage_daily import UsageDaily
from ccstats.db.models.user import User

__all__ = [
    "ModelUsage",
    "Tag",
    "UsageDaily",
    "User",
]
