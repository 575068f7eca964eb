"""Per-session preferences manager: resolution, caching, transitions, teardown."""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import List, Optional

from .config import Settings, get_settings
from .errors import InitializationError, PortalError
from .gateway import LayoutStore, PreferencesGateway
from .layout import UserLayoutManager, build_layout_manager
from .mapper import ProfileMapper, RequestContext
from .preferences_cache import PreferencesCache
from .resolver import ProfileResolver, ResolutionResult
from .session_store import HttpSession
from .telemetry import emit_event
from .transition import LayoutManagerFactory, ProfileTransitionHandler, TransitionOutcome
from .user_preferences import (
    Identity,
    StructureStylesheetDescription,
    ThemeStylesheetDescription,
    UserPreferences,
    UserProfile,
)

logger = logging.getLogger(__name__)


@lru_cache
def save_preferences_at_logout() -> bool:
    """Process-wide flag, read from configuration once."""
    return get_settings().save_preferences_at_logout


class UserPreferencesManager:
    """Owns the profile, preferences and layout manager of one HTTP session.

    Construction resolves the profile and populates the session cache. When
    no profile can be resolved the manager is still usable but
    ``is_client_unmapped`` is true and there is no profile, preferences or
    layout manager; callers should send the user to device registration.

    The manager does no locking. Two concurrent requests of the same session
    may populate the cache in either order.
    """

    def __init__(
        self,
        identity: Identity,
        context: RequestContext,
        session: HttpSession,
        *,
        gateway: PreferencesGateway,
        layout_store: LayoutStore,
        mapper: ProfileMapper,
        settings: Optional[Settings] = None,
        layout_factory: LayoutManagerFactory = build_layout_manager,
        save_at_logout: Optional[bool] = None,
    ) -> None:
        self._identity = identity
        self._gateway = gateway
        self._layout_store = layout_store
        self._layout_factory = layout_factory
        self._layout_manager: Optional[UserLayoutManager] = None
        self._save_at_logout = bool(save_at_logout)
        self._cache = PreferencesCache(gateway, session)
        self._transitions = ProfileTransitionHandler(gateway, layout_store, layout_factory)
        self._resolution: Optional[ResolutionResult] = None
        self._locales: List[str] = []

        try:
            if save_at_logout is None:
                self._save_at_logout = save_preferences_at_logout()
            settings = settings or get_settings()
            resolution = ProfileResolver(gateway, mapper).resolve(identity, context)
            self._resolution = resolution
            if resolution.profile is not None:
                if settings.locale_aware:
                    self._locales = list(context.locales)
                profile = self.localize_profile(resolution.profile)
                preferences = self._cache.populate(identity, profile)
                self._layout_manager = layout_factory(identity, preferences.profile, layout_store)
        except PortalError:
            raise
        except Exception as exc:  # noqa: BLE001
            message = (
                f"Failed to construct preferences manager for user {identity.user_id!r} "
                f"in session {session.session_id}"
            )
            logger.exception(message)
            raise InitializationError(message) from exc

    def localize_profile(self, profile: UserProfile) -> UserProfile:
        """Attach the session's request locales to a profile that carries none."""
        if self._locales and not profile.locales:
            return profile.model_copy(update={"locales": list(self._locales)})
        return profile

    @property
    def identity(self) -> Identity:
        return self._identity

    @property
    def resolution(self) -> Optional[ResolutionResult]:
        return self._resolution

    @property
    def is_client_unmapped(self) -> bool:
        return self._resolution is None or self._resolution.unmapped

    @property
    def preferences(self) -> Optional[UserPreferences]:
        return self._cache.preferences

    def preferences_copy(self) -> Optional[UserPreferences]:
        preferences = self._cache.preferences
        return preferences.copy_independent() if preferences is not None else None

    @property
    def current_profile(self) -> Optional[UserProfile]:
        preferences = self._cache.preferences
        return preferences.profile if preferences is not None else None

    @property
    def layout_manager(self) -> Optional[UserLayoutManager]:
        return self._layout_manager

    def theme_stylesheet_description(self) -> Optional[ThemeStylesheetDescription]:
        return self._cache.theme_stylesheet_description()

    def structure_stylesheet_description(self) -> Optional[StructureStylesheetDescription]:
        return self._cache.structure_stylesheet_description()

    def reload_structure_stylesheet(self) -> bool:
        return self._cache.reload_structure_preferences(self._identity)

    def get_channel_publish_id(self, channel_subscribe_id: str) -> Optional[str]:
        if self._layout_manager is None:
            return None
        node = self._layout_manager.get_node(channel_subscribe_id)
        if node is None or node.node_type != "channel":
            return None
        return node.channel_publish_id

    def set_new_layout_and_preferences(
        self,
        new_layout_manager: Optional[UserLayoutManager],
        new_preferences: Optional[UserPreferences],
    ) -> Optional[TransitionOutcome]:
        """Switch profile and/or preferences; raises ``TransitionError`` on failure."""
        outcome = self._transitions.apply(
            self._identity,
            self._cache,
            self._layout_manager,
            new_preferences,
            new_layout_manager,
        )
        if outcome is not None:
            self._layout_manager = outcome.layout_manager
        return outcome

    def finished_session(self, session: Optional[HttpSession] = None) -> None:
        """Persist preferences and layout when configured to; never raises."""
        if not self._save_at_logout:
            return
        preferences = self._cache.preferences
        if preferences is None or self._layout_manager is None:
            logger.debug("Nothing to persist for user %r at session end", self._identity.user_id)
            return
        try:
            self._gateway.put_user_preferences(self._identity, preferences)
            self._layout_manager.save_user_layout()
        except Exception:  # noqa: BLE001
            logger.exception(
                "Unable to persist layout and preferences for user %r upon session termination",
                self._identity.user_id,
            )
            return
        emit_event("session_flushed", user_id=self._identity.user_id, profile=preferences.profile.name)


__all__ = [
    "UserPreferencesManager",
    "save_preferences_at_logout",
]
