"""Database-backed profile, preference, stylesheet and layout repository."""

from __future__ import annotations

from typing import Any, Dict, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..db.models import (
    PortalProfileModel,
    ProfileAgentMappingModel,
    StructureStylesheetModel,
    ThemeStylesheetModel,
    UserLayoutModel,
    UserPreferencesModel,
)
from ..layout import LayoutNode, UserLayout
from ..user_preferences import (
    StructureStylesheetDescription,
    StructureStylesheetUserPreferences,
    StylesheetParameter,
    ThemeStylesheetDescription,
    ThemeStylesheetUserPreferences,
    UserPreferences,
    UserProfile,
)


def _normalize_user_id(user_id: str) -> str:
    normalized = user_id.strip()
    if not normalized:
        raise ValueError("User id cannot be empty.")
    return normalized


class ProfileRepository:
    """Row-level access; callers own the session and transaction."""

    # Profile lookups -------------------------------------------------

    def find_profile_for_agent(
        self, session: Session, owner_id: Optional[str], user_agent: str
    ) -> Optional[UserProfile]:
        stmt = select(PortalProfileModel).join(ProfileAgentMappingModel).where(
            ProfileAgentMappingModel.user_agent == user_agent,
            self._owner_clause(ProfileAgentMappingModel.owner_id, owner_id),
        )
        model = session.execute(stmt.limit(1)).scalar_one_or_none()
        return self._profile_to_domain(model) if model else None

    def find_profile_by_name(self, session: Session, owner_id: Optional[str], name: str) -> Optional[UserProfile]:
        stmt = select(PortalProfileModel).where(
            PortalProfileModel.name == name,
            self._owner_clause(PortalProfileModel.owner_id, owner_id),
        )
        model = session.execute(stmt.limit(1)).scalar_one_or_none()
        return self._profile_to_domain(model) if model else None

    def add_profile(self, session: Session, owner_id: Optional[str], profile: UserProfile) -> UserProfile:
        model = PortalProfileModel(
            owner_id=_normalize_user_id(owner_id) if owner_id is not None else None,
            name=profile.name,
            description=profile.description,
            layout_id=profile.layout_id,
            structure_stylesheet_id=profile.structure_stylesheet_id,
            theme_stylesheet_id=profile.theme_stylesheet_id,
        )
        session.add(model)
        session.flush()
        return self._profile_to_domain(model)

    def map_agent(self, session: Session, owner_id: Optional[str], user_agent: str, profile_id: int) -> None:
        stmt = select(ProfileAgentMappingModel).where(
            ProfileAgentMappingModel.user_agent == user_agent,
            self._owner_clause(ProfileAgentMappingModel.owner_id, owner_id),
        )
        model = session.execute(stmt).scalar_one_or_none()
        if model is None:
            model = ProfileAgentMappingModel(
                owner_id=_normalize_user_id(owner_id) if owner_id is not None else None,
                user_agent=user_agent,
                profile_id=profile_id,
            )
            session.add(model)
        else:
            model.profile_id = profile_id
        session.flush()

    # Preferences -----------------------------------------------------

    def get_preferences(self, session: Session, user_id: str, profile: UserProfile) -> Optional[UserPreferences]:
        model = self._preferences_model(session, user_id, profile.profile_id)
        if model is None:
            return None
        return UserPreferences(
            profile=profile,
            structure_preferences=StructureStylesheetUserPreferences.model_validate(
                model.structure_preferences or {"stylesheet_id": profile.structure_stylesheet_id}
            ),
            theme_preferences=ThemeStylesheetUserPreferences.model_validate(
                model.theme_preferences or {"stylesheet_id": profile.theme_stylesheet_id}
            ),
        )

    def upsert_preferences(self, session: Session, user_id: str, preferences: UserPreferences) -> None:
        normalized = _normalize_user_id(user_id)
        profile_id = preferences.profile.profile_id
        model = self._preferences_model(session, normalized, profile_id)
        if model is None:
            model = UserPreferencesModel(user_id=normalized, profile_id=profile_id)
            session.add(model)
        model.structure_preferences = preferences.structure_preferences.model_dump(mode="json")
        model.theme_preferences = preferences.theme_preferences.model_dump(mode="json")
        session.flush()

    def get_structure_preferences(
        self, session: Session, user_id: str, profile_id: int, stylesheet_id: int
    ) -> Optional[StructureStylesheetUserPreferences]:
        model = self._preferences_model(session, user_id, profile_id)
        if model is None or not model.structure_preferences:
            return None
        stored = StructureStylesheetUserPreferences.model_validate(model.structure_preferences)
        if stored.stylesheet_id != stylesheet_id:
            return None
        return stored

    # Stylesheets -----------------------------------------------------

    def get_structure_description(self, session: Session, stylesheet_id: int) -> Optional[StructureStylesheetDescription]:
        model = session.get(StructureStylesheetModel, stylesheet_id)
        if model is None:
            return None
        return StructureStylesheetDescription(
            stylesheet_id=model.id,
            name=model.name,
            description=model.description,
            uri=model.uri,
            parameters=self._parameters(model.parameters),
            folder_attributes=self._parameters(model.folder_attributes),
            channel_attributes=self._parameters(model.channel_attributes),
        )

    def get_theme_description(self, session: Session, stylesheet_id: int) -> Optional[ThemeStylesheetDescription]:
        model = session.get(ThemeStylesheetModel, stylesheet_id)
        if model is None:
            return None
        return ThemeStylesheetDescription(
            stylesheet_id=model.id,
            structure_stylesheet_id=model.structure_stylesheet_id,
            name=model.name,
            description=model.description,
            uri=model.uri,
            mime_type=model.mime_type,
            serializer_name=model.serializer_name,
            parameters=self._parameters(model.parameters),
            channel_attributes=self._parameters(model.channel_attributes),
        )

    def add_structure_stylesheet(self, session: Session, description: StructureStylesheetDescription) -> int:
        model = StructureStylesheetModel(
            name=description.name,
            description=description.description,
            uri=description.uri,
            parameters=[entry.model_dump() for entry in description.parameters],
            folder_attributes=[entry.model_dump() for entry in description.folder_attributes],
            channel_attributes=[entry.model_dump() for entry in description.channel_attributes],
        )
        session.add(model)
        session.flush()
        return model.id

    def add_theme_stylesheet(self, session: Session, description: ThemeStylesheetDescription) -> int:
        model = ThemeStylesheetModel(
            structure_stylesheet_id=description.structure_stylesheet_id,
            name=description.name,
            description=description.description,
            uri=description.uri,
            mime_type=description.mime_type,
            serializer_name=description.serializer_name,
            parameters=[entry.model_dump() for entry in description.parameters],
            channel_attributes=[entry.model_dump() for entry in description.channel_attributes],
        )
        session.add(model)
        session.flush()
        return model.id

    # Layouts ---------------------------------------------------------

    def get_layout(self, session: Session, user_id: str, layout_id: int) -> Optional[UserLayout]:
        model = self._layout_model(session, user_id, layout_id)
        if model is None:
            return None
        nodes = {key: LayoutNode.model_validate(payload) for key, payload in (model.nodes or {}).items()}
        return UserLayout(layout_id=model.layout_id, nodes=nodes)

    def upsert_layout(self, session: Session, user_id: str, layout: UserLayout) -> None:
        normalized = _normalize_user_id(user_id)
        model = self._layout_model(session, normalized, layout.layout_id)
        if model is None:
            model = UserLayoutModel(user_id=normalized, layout_id=layout.layout_id)
            session.add(model)
        model.nodes = {key: node.model_dump(mode="json") for key, node in layout.nodes.items()}
        session.flush()

    # Helpers ---------------------------------------------------------

    @staticmethod
    def _owner_clause(column: Any, owner_id: Optional[str]) -> Any:
        if owner_id is None:
            return column.is_(None)
        return column == _normalize_user_id(owner_id)

    @staticmethod
    def _preferences_model(session: Session, user_id: str, profile_id: int) -> Optional[UserPreferencesModel]:
        stmt = select(UserPreferencesModel).where(
            UserPreferencesModel.user_id == _normalize_user_id(user_id),
            UserPreferencesModel.profile_id == profile_id,
        )
        return session.execute(stmt).scalar_one_or_none()

    @staticmethod
    def _layout_model(session: Session, user_id: str, layout_id: int) -> Optional[UserLayoutModel]:
        stmt = select(UserLayoutModel).where(
            UserLayoutModel.user_id == _normalize_user_id(user_id),
            UserLayoutModel.layout_id == layout_id,
        )
        return session.execute(stmt).scalar_one_or_none()

    @staticmethod
    def _parameters(payload: Optional[list[Dict[str, Any]]]) -> list[StylesheetParameter]:
        return [StylesheetParameter.model_validate(entry) for entry in payload or []]

    @staticmethod
    def _profile_to_domain(model: PortalProfileModel) -> UserProfile:
        return UserProfile(
            profile_id=model.id,
            name=model.name,
            description=model.description,
            is_system=model.is_system,
            layout_id=model.layout_id,
            structure_stylesheet_id=model.structure_stylesheet_id,
            theme_stylesheet_id=model.theme_stylesheet_id,
        )


profiles = ProfileRepository()

__all__ = ["ProfileRepository", "profiles"]
