"""Profile, preference and stylesheet models shared across the subsystem."""

from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

UNKNOWN_CLIENT_SIGNATURE = "null"


def normalize_client_signature(raw: Optional[str]) -> str:
    """Replace an absent or empty user agent with the ``"null"`` sentinel."""
    if raw is None or raw == "":
        return UNKNOWN_CLIENT_SIGNATURE
    return raw


class Identity(BaseModel):
    """Authenticated portal user as supplied by the caller."""

    model_config = ConfigDict(frozen=True)

    user_id: str = Field(..., min_length=1)
    legacy_id: Optional[int] = None


class UserProfile(BaseModel):
    profile_id: int
    name: str
    description: str = ""
    is_system: bool = False
    layout_id: int = 0
    structure_stylesheet_id: int = 0
    theme_stylesheet_id: int = 0
    locales: List[str] = Field(default_factory=list)

    def is_equivalent(self, other: "UserProfile") -> bool:
        """Two profiles are interchangeable when name and system flag match."""
        return self.name == other.name and self.is_system == other.is_system


class StylesheetUserPreferences(BaseModel):
    stylesheet_id: int = 0
    parameters: Dict[str, str] = Field(default_factory=dict)


class StructureStylesheetUserPreferences(StylesheetUserPreferences):
    folder_attributes: Dict[str, Dict[str, str]] = Field(default_factory=dict)
    channel_attributes: Dict[str, Dict[str, str]] = Field(default_factory=dict)


class ThemeStylesheetUserPreferences(StylesheetUserPreferences):
    channel_attributes: Dict[str, Dict[str, str]] = Field(default_factory=dict)


class UserPreferences(BaseModel):
    """Profile plus the structure and theme stylesheet preferences bound to it."""

    profile: UserProfile
    structure_preferences: StructureStylesheetUserPreferences
    theme_preferences: ThemeStylesheetUserPreferences

    @classmethod
    def defaults_for(cls, profile: UserProfile) -> "UserPreferences":
        return cls(
            profile=profile,
            structure_preferences=StructureStylesheetUserPreferences(
                stylesheet_id=profile.structure_stylesheet_id
            ),
            theme_preferences=ThemeStylesheetUserPreferences(
                stylesheet_id=profile.theme_stylesheet_id
            ),
        )

    def copy_independent(self) -> "UserPreferences":
        return self.model_copy(deep=True)


class StylesheetParameter(BaseModel):
    name: str
    default_value: str = ""
    description: str = ""


class StylesheetDescription(BaseModel):
    stylesheet_id: int
    name: str
    description: str = ""
    uri: str
    parameters: List[StylesheetParameter] = Field(default_factory=list)


class StructureStylesheetDescription(StylesheetDescription):
    folder_attributes: List[StylesheetParameter] = Field(default_factory=list)
    channel_attributes: List[StylesheetParameter] = Field(default_factory=list)


class ThemeStylesheetDescription(StylesheetDescription):
    structure_stylesheet_id: int
    mime_type: str = "text/html"
    serializer_name: str = "html"
    channel_attributes: List[StylesheetParameter] = Field(default_factory=list)


__all__ = [
    "Identity",
    "StructureStylesheetDescription",
    "StructureStylesheetUserPreferences",
    "StylesheetParameter",
    "StylesheetUserPreferences",
    "ThemeStylesheetDescription",
    "ThemeStylesheetUserPreferences",
    "UNKNOWN_CLIENT_SIGNATURE",
    "UserPreferences",
    "UserProfile",
    "normalize_client_signature",
]
