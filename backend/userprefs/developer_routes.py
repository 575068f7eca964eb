"""Developer utilities for provisioning profiles and inspecting live sessions."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Response, status
from pydantic import BaseModel, Field

from .config import Settings, get_settings
from .errors import StorageError
from .gateway import SqlPreferencesGateway
from .manager import UserPreferencesManager
from .preference_routes import MANAGER_KEY, get_gateway
from .session_store import SessionStore, get_session_store
from .user_preferences import Identity, UserProfile


def require_debug_endpoints(settings: Settings = Depends(get_settings)) -> None:
    if not settings.debug_endpoints:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not Found")


router = APIRouter(
    prefix="/api/developer",
    tags=["developer"],
    dependencies=[Depends(require_debug_endpoints)],
)


class DeveloperProfileRequest(BaseModel):
    name: str = Field(..., min_length=1)
    description: str = ""
    owner_id: Optional[str] = Field(default=None, description="Omit to register a system profile")
    layout_id: int = Field(default=0, ge=0)
    structure_stylesheet_id: int = Field(default=0, ge=0)
    theme_stylesheet_id: int = Field(default=0, ge=0)
    user_agents: List[str] = Field(default_factory=list)


class DeveloperSessionSummary(BaseModel):
    session_id: str
    created_at: str
    user_id: Optional[str] = None
    profile: Optional[str] = None
    unmapped: Optional[bool] = None


@router.post("/profiles", response_model=UserProfile, status_code=status.HTTP_201_CREATED)
def developer_register_profile(
    payload: DeveloperProfileRequest,
    gateway: SqlPreferencesGateway = Depends(get_gateway),
) -> UserProfile:
    owner = Identity(user_id=payload.owner_id.strip()) if payload.owner_id and payload.owner_id.strip() else None
    try:
        profile = gateway.register_profile(
            UserProfile(
                profile_id=0,
                name=payload.name.strip(),
                description=payload.description,
                is_system=owner is None,
                layout_id=payload.layout_id,
                structure_stylesheet_id=payload.structure_stylesheet_id,
                theme_stylesheet_id=payload.theme_stylesheet_id,
            ),
            owner=owner,
        )
        for user_agent in payload.user_agents:
            gateway.map_user_agent(user_agent, profile.profile_id, owner=owner)
    except StorageError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return profile


@router.get("/sessions", response_model=List[DeveloperSessionSummary])
def developer_sessions(store: SessionStore = Depends(get_session_store)) -> List[DeveloperSessionSummary]:
    summaries: List[DeveloperSessionSummary] = []
    for session in store.sessions():
        summary: Dict[str, Any] = {
            "session_id": session.session_id,
            "created_at": session.created_at.isoformat(),
        }
        manager = session.get_attribute(MANAGER_KEY)
        if isinstance(manager, UserPreferencesManager):
            profile = manager.current_profile
            summary.update(
                user_id=manager.identity.user_id,
                profile=profile.name if profile else None,
                unmapped=manager.is_client_unmapped,
            )
        summaries.append(DeveloperSessionSummary(**summary))
    return summaries


@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
def developer_end_session(session_id: str, store: SessionStore = Depends(get_session_store)) -> Response:
    if not store.invalidate(session_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Session '{session_id}' not found.")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


__all__ = ["require_debug_endpoints", "router"]
