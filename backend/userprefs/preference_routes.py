"""REST endpoints exposing the session's profile and preferences."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request, Response, status
from pydantic import BaseModel, Field

from .config import Settings, get_settings
from .errors import InitializationError, StorageError, TransitionError
from .gateway import SqlPreferencesGateway
from .manager import UserPreferencesManager
from .mapper import RequestContext, build_profile_mapper
from .session_store import HttpSession, SessionStore, get_session_store
from .user_preferences import Identity, UserPreferences, UserProfile

router = APIRouter(prefix="/api/preferences", tags=["preferences"])
logger = logging.getLogger(__name__)

MANAGER_KEY = f"{UserPreferencesManager.__module__}.{UserPreferencesManager.__qualname__}"
TRANSITION_FAILED_DETAIL = "Profile transition failed; previous configuration preserved."

_gateway: Optional[SqlPreferencesGateway] = None


def get_gateway() -> SqlPreferencesGateway:
    global _gateway
    if _gateway is None:
        _gateway = SqlPreferencesGateway()
    return _gateway


class TransitionRequest(BaseModel):
    profile_name: str = Field(..., min_length=1)
    system: Optional[bool] = None
    structure_parameters: Dict[str, str] = Field(default_factory=dict)
    theme_parameters: Dict[str, str] = Field(default_factory=dict)


class ProfileResponse(BaseModel):
    profile: UserProfile
    resolved_by: Optional[str] = None


class TransitionResponse(BaseModel):
    profile: UserProfile
    profile_changed: bool
    layout_reused: bool


def get_identity(
    x_user_id: Optional[str] = Header(default=None),
    x_user_legacy_id: Optional[int] = Header(default=None),
) -> Identity:
    if x_user_id is None or not x_user_id.strip():
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing X-User-Id header.")
    return Identity(user_id=x_user_id.strip(), legacy_id=x_user_legacy_id)


def get_http_session(
    request: Request,
    response: Response,
    store: SessionStore = Depends(get_session_store),
    settings: Settings = Depends(get_settings),
) -> HttpSession:
    session, created = store.get_or_create(request.cookies.get(settings.session_cookie_name))
    if created:
        response.set_cookie(settings.session_cookie_name, session.session_id, httponly=True, samesite="lax")
    return session


def _request_context(request: Request, session: HttpSession) -> RequestContext:
    accept_language = request.headers.get("accept-language", "")
    locales = tuple(
        part.split(";", 1)[0].strip()
        for part in accept_language.split(",")
        if part.split(";", 1)[0].strip() and part.strip() != "*"
    )
    return RequestContext(
        user_agent=request.headers.get("user-agent"),
        headers=dict(request.headers),
        locales=locales,
        session_attributes=session.attributes(),
    )


def get_preferences_manager(
    request: Request,
    identity: Identity = Depends(get_identity),
    session: HttpSession = Depends(get_http_session),
    gateway: SqlPreferencesGateway = Depends(get_gateway),
    settings: Settings = Depends(get_settings),
) -> UserPreferencesManager:
    existing = session.get_attribute(MANAGER_KEY)
    if isinstance(existing, UserPreferencesManager):
        if existing.identity.user_id != identity.user_id:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Session belongs to another user.")
        return existing

    try:
        manager = UserPreferencesManager(
            identity,
            _request_context(request, session),
            session,
            gateway=gateway,
            layout_store=gateway,
            mapper=build_profile_mapper(settings),
            settings=settings,
        )
    except StorageError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except InitializationError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc

    # Unmapped sessions are re-resolved on the next request.
    if not manager.is_client_unmapped:
        session.set_attribute(MANAGER_KEY, manager)
        session.add_end_listener(manager.finished_session)
        logger.info("Attached preferences manager for user %s to session %s", identity.user_id, session.session_id)
    return manager


def _unmapped(response: Response, settings: Settings) -> Dict[str, Any]:
    response.status_code = status.HTTP_303_SEE_OTHER
    response.headers["Location"] = settings.unmapped_redirect_url
    return {"status": "unmapped", "redirect": settings.unmapped_redirect_url}


@router.get("/profile")
def current_profile(
    response: Response,
    manager: UserPreferencesManager = Depends(get_preferences_manager),
    settings: Settings = Depends(get_settings),
) -> Any:
    profile = manager.current_profile
    if manager.is_client_unmapped or profile is None:
        return _unmapped(response, settings)
    resolved_by = manager.resolution.step if manager.resolution else None
    return ProfileResponse(profile=profile, resolved_by=resolved_by)


@router.get("")
def current_preferences(
    response: Response,
    manager: UserPreferencesManager = Depends(get_preferences_manager),
    settings: Settings = Depends(get_settings),
) -> Any:
    preferences = manager.preferences_copy()
    if preferences is None:
        return _unmapped(response, settings)
    return preferences


@router.get("/stylesheets")
def stylesheet_descriptions(
    response: Response,
    manager: UserPreferencesManager = Depends(get_preferences_manager),
    settings: Settings = Depends(get_settings),
) -> Any:
    if manager.is_client_unmapped:
        return _unmapped(response, settings)
    try:
        theme = manager.theme_stylesheet_description()
        structure = manager.structure_stylesheet_description()
    except StorageError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return {"theme": theme, "structure": structure}


def _find_profile(
    gateway: SqlPreferencesGateway, identity: Identity, payload: TransitionRequest
) -> Optional[UserProfile]:
    if payload.system is not True:
        profile = gateway.get_user_profile_by_name(identity, payload.profile_name)
        if profile is not None or payload.system is False:
            return profile
    return gateway.get_system_profile_by_name(payload.profile_name)


@router.post("/transition")
def transition(
    payload: TransitionRequest,
    response: Response,
    manager: UserPreferencesManager = Depends(get_preferences_manager),
    gateway: SqlPreferencesGateway = Depends(get_gateway),
    settings: Settings = Depends(get_settings),
) -> Any:
    if manager.is_client_unmapped:
        return _unmapped(response, settings)
    identity = manager.identity
    try:
        profile = _find_profile(gateway, identity, payload)
        if profile is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Profile '{payload.profile_name}' was not found.",
            )
        profile = manager.localize_profile(profile)
        stored = gateway.get_user_preferences(identity, profile)
    except StorageError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=TRANSITION_FAILED_DETAIL) from exc

    new_preferences = stored or UserPreferences.defaults_for(profile)
    new_preferences.structure_preferences.parameters.update(payload.structure_parameters)
    new_preferences.theme_preferences.parameters.update(payload.theme_parameters)

    active = manager.layout_manager
    candidate = active if active is not None and active.layout_id == profile.layout_id else None
    try:
        outcome = manager.set_new_layout_and_preferences(candidate, new_preferences)
    except TransitionError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=TRANSITION_FAILED_DETAIL) from exc
    if outcome is None:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=TRANSITION_FAILED_DETAIL)
    return TransitionResponse(
        profile=profile,
        profile_changed=outcome.profile_changed,
        layout_reused=outcome.layout_reused,
    )


@router.post("/structure/reload")
def reload_structure(
    response: Response,
    manager: UserPreferencesManager = Depends(get_preferences_manager),
    settings: Settings = Depends(get_settings),
) -> Any:
    if manager.is_client_unmapped:
        return _unmapped(response, settings)
    try:
        reloaded = manager.reload_structure_stylesheet()
    except StorageError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return {"reloaded": reloaded}


@router.get("/channels/{subscribe_id}/publish-id")
def channel_publish_id(
    subscribe_id: str,
    manager: UserPreferencesManager = Depends(get_preferences_manager),
) -> Dict[str, str]:
    try:
        publish_id = manager.get_channel_publish_id(subscribe_id)
    except StorageError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    if publish_id is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Channel '{subscribe_id}' not in layout.")
    return {"subscribe_id": subscribe_id, "publish_id": publish_id}


@router.post("/logout")
def logout(
    response: Response,
    session: HttpSession = Depends(get_http_session),
    store: SessionStore = Depends(get_session_store),
    settings: Settings = Depends(get_settings),
) -> Dict[str, str]:
    store.invalidate(session.session_id)
    response.delete_cookie(settings.session_cookie_name)
    return {"status": "ended"}


__all__ = ["MANAGER_KEY", "get_gateway", "get_preferences_manager", "router"]
