"""Session-scoped holder of the active preferences and stylesheet descriptions."""

from __future__ import annotations

import logging
from typing import Optional

from .gateway import PreferencesGateway
from .session_store import SessionAttributes
from .telemetry import emit_event
from .user_preferences import (
    Identity,
    StructureStylesheetDescription,
    ThemeStylesheetDescription,
    UserPreferences,
    UserProfile,
)

logger = logging.getLogger(__name__)


class PreferencesCache:
    """Lazily populated preferences for one session.

    Reads favour availability: a failed gateway read degrades to default
    preferences for the resolved profile. Preferences already held by the
    session always win over stored ones.
    """

    SESSION_KEY = f"{__name__}.PreferencesCache"
    READ_POLICY = "fallback-to-defaults"

    def __init__(self, gateway: PreferencesGateway, session: SessionAttributes) -> None:
        self._gateway = gateway
        self._session = session
        self._preferences: Optional[UserPreferences] = None
        self._theme_description: Optional[ThemeStylesheetDescription] = None
        self._structure_description: Optional[StructureStylesheetDescription] = None

    @property
    def preferences(self) -> Optional[UserPreferences]:
        return self._preferences

    def populate(self, identity: Identity, profile: UserProfile) -> UserPreferences:
        preferences = self._session.get_attribute(self.SESSION_KEY)
        if isinstance(preferences, UserPreferences):
            logger.debug("Found preferences in session, using them instead of loading for profile %s", profile.name)
        else:
            preferences = self._load(identity, profile)
        self._preferences = preferences
        self._session.set_attribute(self.SESSION_KEY, preferences)
        return preferences

    def _load(self, identity: Identity, profile: UserProfile) -> UserPreferences:
        try:
            stored = self._gateway.get_user_preferences(identity, profile)
        except Exception:  # noqa: BLE001
            logger.exception(
                "Failed to retrieve preferences for user=%r profile=%r; using defaults",
                identity.user_id,
                profile.name,
            )
            emit_event("preferences_fallback", user_id=identity.user_id, profile=profile.name)
            return UserPreferences.defaults_for(profile)
        if stored is None:
            logger.debug("No stored preferences for user=%r profile=%r", identity.user_id, profile.name)
            return UserPreferences.defaults_for(profile)
        return stored

    def replace(self, preferences: UserPreferences) -> None:
        self._session.set_attribute(self.SESSION_KEY, preferences)
        self._preferences = preferences

    def restore(self, preferences: Optional[UserPreferences]) -> None:
        """Put back preferences captured before a failed ``replace``."""
        self._preferences = preferences
        if preferences is None:
            self._session.remove_attribute(self.SESSION_KEY)
        else:
            self._session.set_attribute(self.SESSION_KEY, preferences)

    def reload_structure_preferences(self, identity: Identity) -> bool:
        current = self._require()
        reloaded = self._gateway.get_structure_stylesheet_user_preferences(
            identity,
            current.profile.profile_id,
            current.structure_preferences.stylesheet_id,
        )
        if reloaded is None:
            return False
        current.structure_preferences = reloaded
        self._session.set_attribute(self.SESSION_KEY, current)
        return True

    def theme_stylesheet_description(self) -> Optional[ThemeStylesheetDescription]:
        stylesheet_id = self._require().profile.theme_stylesheet_id
        cached = self._theme_description
        if cached is None or cached.stylesheet_id != stylesheet_id:
            self._theme_description = self._gateway.get_theme_stylesheet_description(stylesheet_id)
        return self._theme_description

    def structure_stylesheet_description(self) -> Optional[StructureStylesheetDescription]:
        stylesheet_id = self._require().profile.structure_stylesheet_id
        cached = self._structure_description
        if cached is None or cached.stylesheet_id != stylesheet_id:
            self._structure_description = self._gateway.get_structure_stylesheet_description(stylesheet_id)
        return self._structure_description

    def _require(self) -> UserPreferences:
        if self._preferences is None:
            raise LookupError("Preferences have not been populated for this session.")
        return self._preferences


__all__ = ["PreferencesCache"]
