from __future__ import annotations

import pytest

from fakes import FakeGateway, make_profile
from userprefs.preferences_cache import PreferencesCache
from userprefs.session_store import HttpSession
from userprefs.telemetry import capture_events
from userprefs.user_preferences import (
    Identity,
    StructureStylesheetDescription,
    StructureStylesheetUserPreferences,
    ThemeStylesheetDescription,
    UserPreferences,
)

IDENTITY = Identity(user_id="u1")


def _stored(profile, *, structure_params=None) -> UserPreferences:
    preferences = UserPreferences.defaults_for(profile)
    preferences.structure_preferences.parameters.update(structure_params or {})
    return preferences


def test_populate_loads_stored_preferences_into_session() -> None:
    gateway = FakeGateway()
    profile = make_profile(1, "default")
    gateway.stored_preferences[("u1", 1)] = _stored(profile, structure_params={"tab": "news"})
    session = HttpSession("s1")
    cache = PreferencesCache(gateway, session)

    preferences = cache.populate(IDENTITY, profile)

    assert preferences.structure_preferences.parameters == {"tab": "news"}
    assert session.get_attribute(PreferencesCache.SESSION_KEY) is preferences
    assert cache.preferences is preferences


def test_populate_twice_returns_identical_instance() -> None:
    gateway = FakeGateway()
    profile = make_profile(1, "default")
    gateway.stored_preferences[("u1", 1)] = _stored(profile)
    cache = PreferencesCache(gateway, HttpSession("s1"))

    first = cache.populate(IDENTITY, profile)
    second = cache.populate(IDENTITY, profile)

    assert first is second
    assert gateway.call_names().count("get_user_preferences") == 1


def test_session_held_preferences_win_over_stored_ones() -> None:
    gateway = FakeGateway()
    mobile = make_profile(4, "mobile")
    held = _stored(mobile, structure_params={"edited": "yes"})
    gateway.stored_preferences[("u1", 4)] = _stored(mobile, structure_params={"edited": "no"})
    session = HttpSession("s1")
    session.set_attribute(PreferencesCache.SESSION_KEY, held)

    preferences = PreferencesCache(gateway, session).populate(IDENTITY, mobile)

    assert preferences is held
    assert preferences.structure_preferences.parameters == {"edited": "yes"}
    assert "get_user_preferences" not in gateway.call_names()


def test_read_failure_falls_back_to_profile_defaults(caplog) -> None:
    gateway = FakeGateway()
    gateway.fail_preference_reads = True
    profile = make_profile(1, "default", structure_stylesheet_id=11, theme_stylesheet_id=22)
    cache = PreferencesCache(gateway, HttpSession("s1"))

    with capture_events() as events, caplog.at_level("ERROR"):
        preferences = cache.populate(IDENTITY, profile)

    assert preferences.profile == profile
    assert preferences.structure_preferences.stylesheet_id == 11
    assert preferences.theme_preferences.stylesheet_id == 22
    assert [event.name for event in events] == ["preferences_fallback"]
    assert any("using defaults" in record.getMessage() for record in caplog.records)


def test_missing_stored_preferences_build_defaults_quietly() -> None:
    gateway = FakeGateway()
    profile = make_profile(1, "default")

    with capture_events() as events:
        preferences = PreferencesCache(gateway, HttpSession("s1")).populate(IDENTITY, profile)

    assert preferences == UserPreferences.defaults_for(profile)
    assert events == []


def test_read_policy_degrades_to_defaults() -> None:
    assert PreferencesCache.READ_POLICY == "fallback-to-defaults"


def test_stylesheet_descriptions_are_memoized() -> None:
    gateway = FakeGateway()
    profile = make_profile(1, "default", structure_stylesheet_id=11, theme_stylesheet_id=22)
    gateway.structure_descriptions[11] = StructureStylesheetDescription(stylesheet_id=11, name="tabs", uri="tabs.xsl")
    gateway.theme_descriptions[22] = ThemeStylesheetDescription(
        stylesheet_id=22, structure_stylesheet_id=11, name="blue", uri="blue.xsl"
    )
    cache = PreferencesCache(gateway, HttpSession("s1"))
    cache.populate(IDENTITY, profile)

    first = cache.theme_stylesheet_description()
    assert cache.theme_stylesheet_description() is first
    assert cache.structure_stylesheet_description() is cache.structure_stylesheet_description()

    assert gateway.call_names().count("get_theme_stylesheet_description") == 1
    assert gateway.call_names().count("get_structure_stylesheet_description") == 1


def test_stylesheet_description_refetched_after_stylesheet_change() -> None:
    gateway = FakeGateway()
    default = make_profile(1, "default", theme_stylesheet_id=22)
    tablet = make_profile(2, "tablet", theme_stylesheet_id=33)
    gateway.theme_descriptions[22] = ThemeStylesheetDescription(
        stylesheet_id=22, structure_stylesheet_id=11, name="blue", uri="blue.xsl"
    )
    gateway.theme_descriptions[33] = ThemeStylesheetDescription(
        stylesheet_id=33, structure_stylesheet_id=11, name="green", uri="green.xsl"
    )
    cache = PreferencesCache(gateway, HttpSession("s1"))
    cache.populate(IDENTITY, default)
    assert cache.theme_stylesheet_description().name == "blue"

    cache.replace(UserPreferences.defaults_for(tablet))

    assert cache.theme_stylesheet_description().name == "green"


def test_descriptions_require_population() -> None:
    cache = PreferencesCache(FakeGateway(), HttpSession("s1"))

    with pytest.raises(LookupError):
        cache.theme_stylesheet_description()


def test_reload_structure_preferences_replaces_in_place() -> None:
    gateway = FakeGateway()
    profile = make_profile(1, "default", structure_stylesheet_id=11)
    session = HttpSession("s1")
    cache = PreferencesCache(gateway, session)
    preferences = cache.populate(IDENTITY, profile)
    gateway.structure_preferences[("u1", 1, 11)] = StructureStylesheetUserPreferences(
        stylesheet_id=11, parameters={"columns": "3"}
    )

    assert cache.reload_structure_preferences(IDENTITY) is True

    assert cache.preferences is preferences
    assert preferences.structure_preferences.parameters == {"columns": "3"}
    assert session.get_attribute(PreferencesCache.SESSION_KEY) is preferences


def test_reload_structure_preferences_without_stored_value() -> None:
    gateway = FakeGateway()
    cache = PreferencesCache(gateway, HttpSession("s1"))
    cache.populate(IDENTITY, make_profile(1, "default"))

    assert cache.reload_structure_preferences(IDENTITY) is False
