"""Repositories operating on caller-managed SQLAlchemy sessions."""

from .profiles import ProfileRepository, profiles

__all__ = ["ProfileRepository", "profiles"]
