from __future__ import annotations

import pytest

from userprefs.config import ProfileMapping, Settings
from userprefs.mapper import (
    ChainingProfileMapper,
    RequestContext,
    SessionAttributeProfileMapper,
    UserAgentProfileMapper,
    build_profile_mapper,
)
from userprefs.user_preferences import Identity

IDENTITY = Identity(user_id="u1")


def test_first_matching_pattern_wins() -> None:
    mapper = UserAgentProfileMapper([("iPhone|Android", "mobile"), ("Mobile", "tablet"), (".*", "default")])

    assert mapper.map_to_profile_name(IDENTITY, RequestContext(user_agent="Mozilla iPhone Mobile")) == "mobile"
    assert mapper.map_to_profile_name(IDENTITY, RequestContext(user_agent="Some Mobile")) == "tablet"
    assert mapper.map_to_profile_name(IDENTITY, RequestContext(user_agent="Desktop")) == "default"


def test_user_agent_mapper_without_match_returns_none() -> None:
    mapper = UserAgentProfileMapper([("iPhone", "mobile")])

    assert mapper.map_to_profile_name(IDENTITY, RequestContext(user_agent="BotCrawler/1.0")) is None
    assert mapper.map_to_profile_name(IDENTITY, RequestContext(user_agent=None)) is None


def test_invalid_pattern_is_rejected_at_construction() -> None:
    with pytest.raises(ValueError):
        UserAgentProfileMapper([("(unclosed", "broken")])


def test_session_attribute_mapper_reads_attribute_value() -> None:
    mapper = SessionAttributeProfileMapper("view", {"compact": "mobile"})

    assert mapper.map_to_profile_name(IDENTITY, RequestContext(session_attributes={"view": "compact"})) == "mobile"
    assert mapper.map_to_profile_name(IDENTITY, RequestContext(session_attributes={"view": "wide"})) is None
    assert mapper.map_to_profile_name(IDENTITY, RequestContext(session_attributes={"view": 3})) is None


def test_chain_returns_first_delegate_result_then_default() -> None:
    chain = ChainingProfileMapper(
        [
            SessionAttributeProfileMapper("view", {"compact": "mobile"}),
            UserAgentProfileMapper([("iPad", "tablet")]),
        ],
        default_profile_name="default",
    )

    assert chain.map_to_profile_name(IDENTITY, RequestContext(session_attributes={"view": "compact"})) == "mobile"
    assert chain.map_to_profile_name(IDENTITY, RequestContext(user_agent="iPad")) == "tablet"
    assert chain.map_to_profile_name(IDENTITY, RequestContext(user_agent="Desktop")) == "default"


def test_chain_without_default_yields_none() -> None:
    chain = ChainingProfileMapper([UserAgentProfileMapper([])])

    assert chain.map_to_profile_name(IDENTITY, RequestContext(user_agent="Desktop")) is None


def test_build_profile_mapper_uses_settings() -> None:
    settings = Settings(
        USERPREFS_PROFILE_MAPPINGS=[ProfileMapping(pattern="Android", profile="mobile")],
        USERPREFS_DEFAULT_PROFILE="default",
    )
    mapper = build_profile_mapper(settings)

    assert mapper.map_to_profile_name(IDENTITY, RequestContext(user_agent="Android 14")) == "mobile"
    assert mapper.map_to_profile_name(IDENTITY, RequestContext(user_agent="Desktop")) == "default"


def test_profile_mappings_parse_from_environment(monkeypatch) -> None:
    monkeypatch.setenv("USERPREFS_PROFILE_MAPPINGS", '[{"pattern": "iPhone", "profile": "mobile"}]')

    settings = Settings()

    assert settings.profile_mappings == [ProfileMapping(pattern="iPhone", profile="mobile")]
