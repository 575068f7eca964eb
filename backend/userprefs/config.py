import os
from functools import lru_cache
from typing import List, Optional

from pydantic import BaseModel, Field, ValidationError
from pydantic_settings import BaseSettings


class ProfileMapping(BaseModel):
    pattern: str
    profile: str


class Settings(BaseSettings):
    database_url: Optional[str] = Field(None, alias="USERPREFS_DATABASE_URL")
    database_pool_size: int = Field(10, alias="USERPREFS_DATABASE_POOL_SIZE")
    database_max_overflow: int = Field(10, alias="USERPREFS_DATABASE_MAX_OVERFLOW")
    database_echo: bool = Field(False, alias="USERPREFS_DATABASE_ECHO")
    save_preferences_at_logout: bool = Field(False, alias="USERPREFS_SAVE_PREFERENCES_AT_LOGOUT")
    locale_aware: bool = Field(False, alias="USERPREFS_LOCALE_AWARE")
    profile_mappings: List[ProfileMapping] = Field(default_factory=list, alias="USERPREFS_PROFILE_MAPPINGS")
    default_profile_name: Optional[str] = Field(None, alias="USERPREFS_DEFAULT_PROFILE")
    unmapped_redirect_url: str = Field("/register-device", alias="USERPREFS_UNMAPPED_REDIRECT_URL")
    session_cookie_name: str = Field("userprefs_session", alias="USERPREFS_SESSION_COOKIE")
    debug_endpoints: bool = Field(False, alias="USERPREFS_DEBUG_ENDPOINTS")

    class Config:
        env_file = os.getenv("ENV_FILE", ".env")
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache
def get_settings() -> Settings:
    try:
        return Settings()  # type: ignore[arg-type]
    except ValidationError as exc:
        raise RuntimeError(f"Invalid backend configuration: {exc}") from exc
