"""Apply a requested profile/preferences replacement to a session."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from .errors import TransitionError
from .gateway import LayoutStore, PreferencesGateway
from .layout import UserLayoutManager, build_layout_manager
from .preferences_cache import PreferencesCache
from .telemetry import emit_event
from .user_preferences import Identity, UserPreferences, UserProfile

logger = logging.getLogger(__name__)

LayoutManagerFactory = Callable[[Identity, UserProfile, LayoutStore], UserLayoutManager]


@dataclass(frozen=True)
class TransitionOutcome:
    layout_manager: UserLayoutManager
    profile_changed: bool
    layout_reused: bool


class ProfileTransitionHandler:
    """All-or-nothing transition.

    The layout manager is chosen and the session slot written before the
    preferences are persisted, so an invalidated session fails the
    transition without touching storage. A failed write puts the previous
    preferences back; on any failure the session keeps its previous
    profile, preferences and layout manager.
    """

    WRITE_POLICY = "all-or-nothing"

    def __init__(
        self,
        gateway: PreferencesGateway,
        layout_store: LayoutStore,
        layout_factory: LayoutManagerFactory = build_layout_manager,
    ) -> None:
        self._gateway = gateway
        self._layout_store = layout_store
        self._layout_factory = layout_factory

    def apply(
        self,
        identity: Identity,
        cache: PreferencesCache,
        active_layout_manager: Optional[UserLayoutManager],
        new_preferences: Optional[UserPreferences],
        new_layout_manager: Optional[UserLayoutManager] = None,
    ) -> Optional[TransitionOutcome]:
        if new_preferences is None:
            return None

        current = cache.preferences
        new_profile = new_preferences.profile
        try:
            profile_changed = current is None or not current.profile.is_equivalent(new_profile)
            layout_manager, reused = self._select_layout_manager(
                identity, new_profile, profile_changed, active_layout_manager, new_layout_manager
            )
            cache.replace(new_preferences)
            try:
                self._gateway.put_user_preferences(identity, new_preferences)
            except Exception:
                cache.restore(current)
                raise
        except Exception as exc:  # noqa: BLE001
            logger.exception(
                "Failed to apply new layout manager %r and/or preferences for profile %r",
                new_layout_manager,
                new_profile.name,
            )
            raise TransitionError(f"Profile transition to {new_profile.name!r} failed") from exc

        emit_event(
            "profile_transition",
            user_id=identity.user_id,
            from_profile=current.profile.name if current else None,
            to_profile=new_profile.name,
            layout_reused=reused,
        )
        return TransitionOutcome(layout_manager=layout_manager, profile_changed=profile_changed, layout_reused=reused)

    def _select_layout_manager(
        self,
        identity: Identity,
        new_profile: UserProfile,
        profile_changed: bool,
        active: Optional[UserLayoutManager],
        supplied: Optional[UserLayoutManager],
    ) -> tuple[UserLayoutManager, bool]:
        if not profile_changed and active is not None:
            return active, True
        if (
            profile_changed
            and supplied is not None
            and supplied.identity == identity
            and supplied.layout_id == new_profile.layout_id
        ):
            return supplied, True
        return self._layout_factory(identity, new_profile, self._layout_store), False


__all__ = [
    "LayoutManagerFactory",
    "ProfileTransitionHandler",
    "TransitionOutcome",
]
