from __future__ import annotations

from typing import Iterator

import pytest
from pydantic import ValidationError
from sqlalchemy import update
from sqlalchemy.exc import OperationalError

from userprefs import gateway as gateway_module
from userprefs.config import get_settings
from userprefs.db.models import UserLayoutModel, UserPreferencesModel
from userprefs.db.session import create_schema, dispose_engine, session_scope
from userprefs.errors import StorageError
from userprefs.gateway import SqlPreferencesGateway
from userprefs.layout import LayoutNode, UserLayout
from userprefs.preferences_cache import PreferencesCache
from userprefs.session_store import HttpSession
from userprefs.telemetry import capture_events
from userprefs.user_preferences import (
    Identity,
    StructureStylesheetDescription,
    StylesheetParameter,
    ThemeStylesheetDescription,
    UserPreferences,
    UserProfile,
)

USER = Identity(user_id="u1")


@pytest.fixture
def gateway(tmp_path, monkeypatch) -> Iterator[SqlPreferencesGateway]:
    monkeypatch.setenv("USERPREFS_DATABASE_URL", f"sqlite:///{tmp_path / 'prefs.sqlite'}")
    get_settings.cache_clear()
    dispose_engine()
    create_schema()
    yield SqlPreferencesGateway()
    dispose_engine()
    get_settings.cache_clear()


def _profile(name: str, *, layout_id: int = 100, structure_id: int = 0, theme_id: int = 0) -> UserProfile:
    return UserProfile(
        profile_id=0,
        name=name,
        layout_id=layout_id,
        structure_stylesheet_id=structure_id,
        theme_stylesheet_id=theme_id,
    )


def test_system_profile_by_user_agent(gateway: SqlPreferencesGateway) -> None:
    default = gateway.register_profile(_profile("default"))
    gateway.map_user_agent("null", default.profile_id)

    found = gateway.get_system_profile("null")

    assert found is not None
    assert found.name == "default"
    assert found.is_system is True
    assert gateway.get_system_profile("Mozilla/5.0") is None
    assert gateway.get_user_profile(USER, "null") is None


def test_user_profile_lookups_are_owner_scoped(gateway: SqlPreferencesGateway) -> None:
    mine = gateway.register_profile(_profile("mobile"), owner=USER)
    gateway.map_user_agent("iPhone", mine.profile_id, owner=USER)
    gateway.register_profile(_profile("mobile", layout_id=5))

    assert mine.is_system is False
    by_agent = gateway.get_user_profile(USER, "iPhone")
    assert by_agent is not None and by_agent.profile_id == mine.profile_id
    assert gateway.get_user_profile(Identity(user_id="u2"), "iPhone") is None

    user_named = gateway.get_user_profile_by_name(USER, "mobile")
    system_named = gateway.get_system_profile_by_name("mobile")
    assert user_named is not None and user_named.is_system is False
    assert system_named is not None and system_named.layout_id == 5


def test_remapping_user_agent_replaces_target(gateway: SqlPreferencesGateway) -> None:
    first = gateway.register_profile(_profile("default"))
    second = gateway.register_profile(_profile("tablet"))
    gateway.map_user_agent("iPad", first.profile_id)
    gateway.map_user_agent("iPad", second.profile_id)

    found = gateway.get_system_profile("iPad")

    assert found is not None and found.name == "tablet"


def test_preferences_round_trip_per_profile(gateway: SqlPreferencesGateway) -> None:
    default = gateway.register_profile(_profile("default", structure_id=3, theme_id=4))
    assert gateway.get_user_preferences(USER, default) is None

    preferences = UserPreferences.defaults_for(default)
    preferences.structure_preferences.folder_attributes["f1"] = {"width": "40%"}
    preferences.theme_preferences.parameters["color"] = "blue"
    gateway.put_user_preferences(USER, preferences)
    preferences.theme_preferences.parameters["color"] = "green"
    gateway.put_user_preferences(USER, preferences)

    loaded = gateway.get_user_preferences(USER, default)
    assert loaded is not None
    assert loaded.profile == default
    assert loaded.structure_preferences.folder_attributes == {"f1": {"width": "40%"}}
    assert loaded.theme_preferences.parameters == {"color": "green"}
    assert gateway.get_user_preferences(Identity(user_id="u2"), default) is None


def test_structure_preferences_match_stylesheet_id(gateway: SqlPreferencesGateway) -> None:
    default = gateway.register_profile(_profile("default", structure_id=3))
    preferences = UserPreferences.defaults_for(default)
    preferences.structure_preferences.parameters["columns"] = "2"
    gateway.put_user_preferences(USER, preferences)

    loaded = gateway.get_structure_stylesheet_user_preferences(USER, default.profile_id, 3)

    assert loaded is not None and loaded.parameters == {"columns": "2"}
    assert gateway.get_structure_stylesheet_user_preferences(USER, default.profile_id, 99) is None


def test_stylesheet_descriptions(gateway: SqlPreferencesGateway) -> None:
    structure_id = gateway.register_structure_stylesheet(
        StructureStylesheetDescription(
            stylesheet_id=0,
            name="tabs",
            uri="tabs.xsl",
            parameters=[StylesheetParameter(name="activeTab", default_value="1")],
            folder_attributes=[StylesheetParameter(name="width", default_value="100%")],
        )
    )
    theme_id = gateway.register_theme_stylesheet(
        ThemeStylesheetDescription(
            stylesheet_id=0, structure_stylesheet_id=structure_id, name="blue", uri="blue.xsl"
        )
    )

    structure = gateway.get_structure_stylesheet_description(structure_id)
    theme = gateway.get_theme_stylesheet_description(theme_id)

    assert structure is not None and structure.parameters[0].name == "activeTab"
    assert structure.folder_attributes[0].default_value == "100%"
    assert theme is not None and theme.structure_stylesheet_id == structure_id
    assert theme.mime_type == "text/html"
    assert gateway.get_theme_stylesheet_description(theme_id + 100) is None


def test_layout_round_trip(gateway: SqlPreferencesGateway) -> None:
    default = gateway.register_profile(_profile("default", layout_id=100))
    assert gateway.get_user_layout(USER, default) is None

    layout = UserLayout(
        layout_id=100,
        nodes={
            "f1": LayoutNode(node_id="f1", name="Main"),
            "c1": LayoutNode(node_id="c1", node_type="channel", parent_id="f1", channel_publish_id="42"),
        },
    )
    gateway.set_user_layout(USER, default, layout)

    loaded = gateway.get_user_layout(USER, default)
    assert loaded == layout


def test_sqlalchemy_errors_become_storage_errors(gateway: SqlPreferencesGateway, monkeypatch) -> None:
    class BrokenRepository:
        def find_profile_for_agent(self, session, owner_id, user_agent):
            raise OperationalError("SELECT", {}, Exception("database is locked"))

    monkeypatch.setattr(gateway_module, "_repo", lambda: BrokenRepository())

    with pytest.raises(StorageError) as excinfo:
        gateway.get_system_profile("null")

    assert isinstance(excinfo.value.__cause__, OperationalError)


def _overwrite(model, **values) -> None:
    with session_scope() as session:
        session.execute(update(model).values(**values))


def test_corrupt_preferences_row_becomes_storage_error(gateway: SqlPreferencesGateway) -> None:
    tablet = gateway.register_profile(_profile("tablet"))
    gateway.put_user_preferences(USER, UserPreferences.defaults_for(tablet))
    _overwrite(UserPreferencesModel, theme_preferences={"stylesheet_id": "not-an-int"})

    with pytest.raises(StorageError) as excinfo:
        gateway.get_user_preferences(USER, tablet)

    assert isinstance(excinfo.value.__cause__, ValidationError)


def test_corrupt_layout_row_becomes_storage_error(gateway: SqlPreferencesGateway) -> None:
    default = gateway.register_profile(_profile("default", layout_id=100))
    gateway.set_user_layout(USER, default, UserLayout(layout_id=100, nodes={"f1": LayoutNode(node_id="f1")}))
    _overwrite(UserLayoutModel, nodes={"f1": {"node_id": "f1", "node_type": "bogus"}})

    with pytest.raises(StorageError) as excinfo:
        gateway.get_user_layout(USER, default)

    assert isinstance(excinfo.value.__cause__, ValidationError)


def test_corrupt_preferences_row_falls_back_to_defaults_in_cache(gateway: SqlPreferencesGateway) -> None:
    tablet = gateway.register_profile(_profile("tablet", structure_id=3, theme_id=4))
    stored = UserPreferences.defaults_for(tablet)
    stored.theme_preferences.parameters["color"] = "blue"
    gateway.put_user_preferences(USER, stored)
    _overwrite(UserPreferencesModel, theme_preferences={"stylesheet_id": "not-an-int"})
    cache = PreferencesCache(gateway, HttpSession("s1"))

    with capture_events() as events:
        preferences = cache.populate(USER, tablet)

    assert preferences == UserPreferences.defaults_for(tablet)
    assert [event.name for event in events] == ["preferences_fallback"]
