"""Persistence gateway interfaces and the SQLAlchemy-backed implementation."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING, Generator, Optional, Protocol

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .db.session import session_scope
from .errors import StorageError
from .layout import UserLayout
from .user_preferences import (
    Identity,
    StructureStylesheetDescription,
    StructureStylesheetUserPreferences,
    ThemeStylesheetDescription,
    UserPreferences,
    UserProfile,
)

if TYPE_CHECKING:
    from .repositories.profiles import ProfileRepository

logger = logging.getLogger(__name__)


def _repo() -> "ProfileRepository":
    from .repositories.profiles import profiles as repository

    return repository


class PreferencesGateway(Protocol):
    """Store of profiles, preferences and stylesheet descriptions.

    Implementations must be safe to call from several sessions at once and
    signal failures with :class:`StorageError`.
    """

    def get_user_profile(self, identity: Identity, client_signature: str) -> Optional[UserProfile]:
        ...

    def get_system_profile(self, client_signature: str) -> Optional[UserProfile]:
        ...

    def get_user_profile_by_name(self, identity: Identity, name: str) -> Optional[UserProfile]:
        ...

    def get_system_profile_by_name(self, name: str) -> Optional[UserProfile]:
        ...

    def get_user_preferences(self, identity: Identity, profile: UserProfile) -> Optional[UserPreferences]:
        ...

    def put_user_preferences(self, identity: Identity, preferences: UserPreferences) -> None:
        ...

    def get_structure_stylesheet_user_preferences(
        self, identity: Identity, profile_id: int, stylesheet_id: int
    ) -> Optional[StructureStylesheetUserPreferences]:
        ...

    def get_structure_stylesheet_description(self, stylesheet_id: int) -> Optional[StructureStylesheetDescription]:
        ...

    def get_theme_stylesheet_description(self, stylesheet_id: int) -> Optional[ThemeStylesheetDescription]:
        ...


class LayoutStore(Protocol):
    def get_user_layout(self, identity: Identity, profile: UserProfile) -> Optional[UserLayout]:
        ...

    def set_user_layout(self, identity: Identity, profile: UserProfile, layout: UserLayout) -> None:
        ...


@contextmanager
def _storage_scope(operation: str, *, commit: bool = True) -> Generator[Session, None, None]:
    try:
        with session_scope(commit=commit) as session:
            yield session
    except SQLAlchemyError as exc:
        logger.warning("Persistence failure during %s: %s", operation, exc)
        raise StorageError(f"Persistence failure during {operation}") from exc
    except ValidationError as exc:
        logger.warning("Stored data failed validation during %s: %s", operation, exc)
        raise StorageError(f"Corrupt stored data read during {operation}") from exc


class SqlPreferencesGateway:
    """Gateway and layout store over the relational schema."""

    def get_user_profile(self, identity: Identity, client_signature: str) -> Optional[UserProfile]:
        with _storage_scope("get_user_profile", commit=False) as session:
            return _repo().find_profile_for_agent(session, identity.user_id, client_signature)

    def get_system_profile(self, client_signature: str) -> Optional[UserProfile]:
        with _storage_scope("get_system_profile", commit=False) as session:
            return _repo().find_profile_for_agent(session, None, client_signature)

    def get_user_profile_by_name(self, identity: Identity, name: str) -> Optional[UserProfile]:
        with _storage_scope("get_user_profile_by_name", commit=False) as session:
            return _repo().find_profile_by_name(session, identity.user_id, name)

    def get_system_profile_by_name(self, name: str) -> Optional[UserProfile]:
        with _storage_scope("get_system_profile_by_name", commit=False) as session:
            return _repo().find_profile_by_name(session, None, name)

    def get_user_preferences(self, identity: Identity, profile: UserProfile) -> Optional[UserPreferences]:
        with _storage_scope("get_user_preferences", commit=False) as session:
            return _repo().get_preferences(session, identity.user_id, profile)

    def put_user_preferences(self, identity: Identity, preferences: UserPreferences) -> None:
        with _storage_scope("put_user_preferences") as session:
            _repo().upsert_preferences(session, identity.user_id, preferences)

    def get_structure_stylesheet_user_preferences(
        self, identity: Identity, profile_id: int, stylesheet_id: int
    ) -> Optional[StructureStylesheetUserPreferences]:
        with _storage_scope("get_structure_stylesheet_user_preferences", commit=False) as session:
            return _repo().get_structure_preferences(session, identity.user_id, profile_id, stylesheet_id)

    def get_structure_stylesheet_description(self, stylesheet_id: int) -> Optional[StructureStylesheetDescription]:
        with _storage_scope("get_structure_stylesheet_description", commit=False) as session:
            return _repo().get_structure_description(session, stylesheet_id)

    def get_theme_stylesheet_description(self, stylesheet_id: int) -> Optional[ThemeStylesheetDescription]:
        with _storage_scope("get_theme_stylesheet_description", commit=False) as session:
            return _repo().get_theme_description(session, stylesheet_id)

    def get_user_layout(self, identity: Identity, profile: UserProfile) -> Optional[UserLayout]:
        with _storage_scope("get_user_layout", commit=False) as session:
            return _repo().get_layout(session, identity.user_id, profile.layout_id)

    def set_user_layout(self, identity: Identity, profile: UserProfile, layout: UserLayout) -> None:
        with _storage_scope("set_user_layout") as session:
            _repo().upsert_layout(session, identity.user_id, layout)

    # Provisioning used by seed scripts and tests.

    def register_profile(self, profile: UserProfile, *, owner: Optional[Identity] = None) -> UserProfile:
        with _storage_scope("register_profile") as session:
            return _repo().add_profile(session, owner.user_id if owner else None, profile)

    def map_user_agent(self, user_agent: str, profile_id: int, *, owner: Optional[Identity] = None) -> None:
        with _storage_scope("map_user_agent") as session:
            _repo().map_agent(session, owner.user_id if owner else None, user_agent, profile_id)

    def register_structure_stylesheet(self, description: StructureStylesheetDescription) -> int:
        with _storage_scope("register_structure_stylesheet") as session:
            return _repo().add_structure_stylesheet(session, description)

    def register_theme_stylesheet(self, description: ThemeStylesheetDescription) -> int:
        with _storage_scope("register_theme_stylesheet") as session:
            return _repo().add_theme_stylesheet(session, description)


__all__ = [
    "LayoutStore",
    "PreferencesGateway",
    "SqlPreferencesGateway",
]
