"""ORM models backing the profile and preference store."""

from __future__ import annotations

from typing import Optional

from sqlalchemy import ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.types import JSON

from .base import Base, TimestampMixin

JSONType = JSON


class StructureStylesheetModel(TimestampMixin, Base):
    __tablename__ = "structure_stylesheets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)
    uri: Mapped[str] = mapped_column(String(255), nullable=False)
    parameters: Mapped[list[dict]] = mapped_column(JSONType, default=list, nullable=False)
    folder_attributes: Mapped[list[dict]] = mapped_column(JSONType, default=list, nullable=False)
    channel_attributes: Mapped[list[dict]] = mapped_column(JSONType, default=list, nullable=False)


class ThemeStylesheetModel(TimestampMixin, Base):
    __tablename__ = "theme_stylesheets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    structure_stylesheet_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("structure_stylesheets.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)
    uri: Mapped[str] = mapped_column(String(255), nullable=False)
    mime_type: Mapped[str] = mapped_column(String(64), default="text/html", nullable=False)
    serializer_name: Mapped[str] = mapped_column(String(64), default="html", nullable=False)
    parameters: Mapped[list[dict]] = mapped_column(JSONType, default=list, nullable=False)
    channel_attributes: Mapped[list[dict]] = mapped_column(JSONType, default=list, nullable=False)


class PortalProfileModel(TimestampMixin, Base):
    """Profile row; ``owner_id`` is NULL for system profiles."""

    __tablename__ = "portal_profiles"
    __table_args__ = (
        UniqueConstraint("owner_id", "name", name="uq_portal_profiles_owner_name"),
        Index("ix_portal_profiles_name", "name"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    owner_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)
    layout_id: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    structure_stylesheet_id: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    theme_stylesheet_id: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    agent_mappings: Mapped[list["ProfileAgentMappingModel"]] = relationship(
        back_populates="profile", cascade="all, delete-orphan"
    )

    @property
    def is_system(self) -> bool:
        return self.owner_id is None


class ProfileAgentMappingModel(Base):
    __tablename__ = "profile_agent_mappings"
    __table_args__ = (
        UniqueConstraint("owner_id", "user_agent", name="uq_profile_agent_owner_agent"),
        Index("ix_profile_agent_mappings_agent", "user_agent"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    owner_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    user_agent: Mapped[str] = mapped_column(String(512), nullable=False)
    profile_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("portal_profiles.id", ondelete="CASCADE"), nullable=False
    )

    profile: Mapped[PortalProfileModel] = relationship(back_populates="agent_mappings")


class UserPreferencesModel(TimestampMixin, Base):
    __tablename__ = "user_preferences"
    __table_args__ = (UniqueConstraint("user_id", "profile_id", name="uq_user_preferences_user_profile"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    profile_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("portal_profiles.id", ondelete="CASCADE"), nullable=False
    )
    structure_preferences: Mapped[dict] = mapped_column(JSONType, default=dict, nullable=False)
    theme_preferences: Mapped[dict] = mapped_column(JSONType, default=dict, nullable=False)


class UserLayoutModel(TimestampMixin, Base):
    __tablename__ = "user_layouts"
    __table_args__ = (UniqueConstraint("user_id", "layout_id", name="uq_user_layouts_user_layout"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    layout_id: Mapped[int] = mapped_column(Integer, nullable=False)
    nodes: Mapped[dict] = mapped_column(JSONType, default=dict, nullable=False)


__all__ = [
    "PortalProfileModel",
    "ProfileAgentMappingModel",
    "StructureStylesheetModel",
    "ThemeStylesheetModel",
    "UserLayoutModel",
    "UserPreferencesModel",
]
