"""Database base class, session handling, and ORM models."""
