"""Profile mappers: derive a fallback profile name from the request."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Pattern, Protocol, Sequence, Tuple

from .config import Settings
from .user_preferences import Identity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RequestContext:
    user_agent: Optional[str] = None
    headers: Mapping[str, str] = field(default_factory=dict)
    locales: Tuple[str, ...] = ()
    session_attributes: Mapping[str, Any] = field(default_factory=dict)


class ProfileMapper(Protocol):
    def map_to_profile_name(self, identity: Identity, context: RequestContext) -> Optional[str]:
        """Return a profile name, or ``None`` when there is no mapping."""
        ...


def _compile(mappings: Iterable[Tuple[str, str]]) -> List[Tuple[Pattern[str], str]]:
    compiled: List[Tuple[Pattern[str], str]] = []
    for pattern, profile_name in mappings:
        try:
            compiled.append((re.compile(pattern), profile_name))
        except re.error as exc:
            raise ValueError(f"Invalid profile mapping pattern {pattern!r}: {exc}") from exc
    return compiled


class UserAgentProfileMapper:
    """First regex (``re.search``) matching the user agent wins."""

    def __init__(self, mappings: Iterable[Tuple[str, str]]) -> None:
        self._mappings = _compile(mappings)

    def map_to_profile_name(self, identity: Identity, context: RequestContext) -> Optional[str]:
        user_agent = context.user_agent
        if not user_agent:
            return None
        for pattern, profile_name in self._mappings:
            if pattern.search(user_agent):
                logger.debug("User agent %r matched %s -> %s", user_agent, pattern.pattern, profile_name)
                return profile_name
        return None


class SessionAttributeProfileMapper:
    """Map the value of a session attribute (e.g. a chosen view) to a profile."""

    def __init__(self, attribute: str, mappings: Dict[str, str]) -> None:
        self._attribute = attribute
        self._mappings = dict(mappings)

    def map_to_profile_name(self, identity: Identity, context: RequestContext) -> Optional[str]:
        value = context.session_attributes.get(self._attribute)
        if not isinstance(value, str):
            return None
        return self._mappings.get(value)


class ChainingProfileMapper:
    def __init__(self, mappers: Sequence[ProfileMapper], default_profile_name: Optional[str] = None) -> None:
        self._mappers = list(mappers)
        self._default = default_profile_name

    def map_to_profile_name(self, identity: Identity, context: RequestContext) -> Optional[str]:
        for mapper in self._mappers:
            profile_name = mapper.map_to_profile_name(identity, context)
            if profile_name:
                return profile_name
        return self._default


def build_profile_mapper(settings: Settings) -> ChainingProfileMapper:
    user_agent_mapper = UserAgentProfileMapper(
        (mapping.pattern, mapping.profile) for mapping in settings.profile_mappings
    )
    return ChainingProfileMapper([user_agent_mapper], settings.default_profile_name)


__all__ = [
    "ChainingProfileMapper",
    "ProfileMapper",
    "RequestContext",
    "SessionAttributeProfileMapper",
    "UserAgentProfileMapper",
    "build_profile_mapper",
]
