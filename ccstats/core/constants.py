"""Validation constants shared by repositories and services."""
import re
from decimal import Decimal

USERNAME_MIN_LENGTH = 3
USERNAME_MAX_LENGTH = 128
USERNAME_PATTERN = re.compile(r"[a-zA-Z0-9._-]+")

TAG_MIN_LENGTH = 2
TAG_MAX_LENGTH = 64
TAG_NAME_PATTERN = re.compile(r"[0-9A-Za-z .\-_]+")

DEFAULT_MODEL_NAME = "unknown"
DEFAULT_PROVIDER = "anthropic"

COST_QUANTUM = Decimal("0.0001")
