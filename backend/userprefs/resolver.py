"""Profile resolution cascade."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Callable, Iterator, Optional, Tuple

from .gateway import PreferencesGateway
from .mapper import ProfileMapper, RequestContext
from .telemetry import emit_event
from .user_preferences import Identity, UserProfile, normalize_client_signature

logger = logging.getLogger(__name__)

Lookup = Callable[[], Optional[UserProfile]]

STEP_USER_AGENT = "user_agent"
STEP_SYSTEM_AGENT = "system_agent"
STEP_USER_MAPPED = "user_mapped"
STEP_SYSTEM_MAPPED = "system_mapped"


@dataclass(frozen=True)
class ResolutionResult:
    client_signature: str
    profile: Optional[UserProfile] = None
    step: Optional[str] = None
    mapped_name: Optional[str] = None

    @property
    def unmapped(self) -> bool:
        return self.profile is None


class ProfileResolver:
    """Pick the profile for an identity and client signature.

    Lookups run most specific first and stop at the first hit. Running out
    of lookups is a normal outcome (``unmapped``), not an error. Gateway
    failures propagate to the caller.
    """

    def __init__(self, gateway: PreferencesGateway, mapper: ProfileMapper) -> None:
        self._gateway = gateway
        self._mapper = mapper

    def resolve(self, identity: Identity, context: RequestContext) -> ResolutionResult:
        signature = normalize_client_signature(context.user_agent)
        normalized_context = replace(context, user_agent=signature)
        mapped_name: Optional[str] = None

        for step, lookup, derived_name in self._cascade(identity, signature, normalized_context):
            mapped_name = derived_name or mapped_name
            profile = lookup()
            if profile is not None:
                emit_event("profile_resolved", user_id=identity.user_id, profile=profile.name, step=step)
                return ResolutionResult(signature, profile=profile, step=step, mapped_name=mapped_name)

        logger.debug(
            "Unable to find a profile for user %r and client signature %r",
            identity.user_id,
            signature,
        )
        emit_event("profile_unmapped", user_id=identity.user_id, client_signature=signature)
        return ResolutionResult(signature, mapped_name=mapped_name)

    def _cascade(
        self, identity: Identity, signature: str, context: RequestContext
    ) -> Iterator[Tuple[str, Lookup, Optional[str]]]:
        gateway = self._gateway
        yield STEP_USER_AGENT, lambda: gateway.get_user_profile(identity, signature), None
        yield STEP_SYSTEM_AGENT, lambda: gateway.get_system_profile(signature), None

        # The mapper only runs once both direct lookups have missed.
        name = self._mapper.map_to_profile_name(identity, context)
        if not name:
            return
        yield STEP_USER_MAPPED, lambda: gateway.get_user_profile_by_name(identity, name), name
        yield STEP_SYSTEM_MAPPED, lambda: gateway.get_system_profile_by_name(name), name


__all__ = [
    "ProfileResolver",
    "ResolutionResult",
    "STEP_SYSTEM_AGENT",
    "STEP_SYSTEM_MAPPED",
    "STEP_USER_AGENT",
    "STEP_USER_MAPPED",
]
