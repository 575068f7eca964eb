"""Per-session user layout handle bound to one identity and profile."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Dict, Literal, Optional

from pydantic import BaseModel, Field

from .user_preferences import Identity, UserProfile

if TYPE_CHECKING:
    from .gateway import LayoutStore

logger = logging.getLogger(__name__)


class LayoutNode(BaseModel):
    node_id: str
    node_type: Literal["folder", "channel"] = "folder"
    name: str = ""
    parent_id: Optional[str] = None
    channel_publish_id: Optional[str] = None


class UserLayout(BaseModel):
    layout_id: int
    nodes: Dict[str, LayoutNode] = Field(default_factory=dict)


class UserLayoutManager:
    """Stateful layout handle.

    The identity is fixed at construction. A manager is reused only for
    profiles that share its layout id; otherwise a new one is built.
    The layout itself is loaded lazily on first access.
    """

    def __init__(self, identity: Identity, profile: UserProfile, store: "LayoutStore") -> None:
        self._identity = identity
        self._profile = profile
        self._store = store
        self._layout: Optional[UserLayout] = None
        self._dirty = False

    @property
    def identity(self) -> Identity:
        return self._identity

    @property
    def profile(self) -> UserProfile:
        return self._profile

    @property
    def layout_id(self) -> int:
        return self._profile.layout_id

    def get_user_layout(self) -> UserLayout:
        if self._layout is None:
            stored = self._store.get_user_layout(self._identity, self._profile)
            self._layout = stored if stored is not None else UserLayout(layout_id=self.layout_id)
        return self._layout

    def get_node(self, node_id: str) -> Optional[LayoutNode]:
        return self.get_user_layout().nodes.get(node_id)

    def add_node(self, node: LayoutNode) -> None:
        layout = self.get_user_layout()
        if node.parent_id is not None and node.parent_id not in layout.nodes:
            raise LookupError(f"Parent node '{node.parent_id}' is not part of layout {self.layout_id}.")
        layout.nodes[node.node_id] = node
        self._dirty = True

    def remove_node(self, node_id: str) -> bool:
        layout = self.get_user_layout()
        if node_id not in layout.nodes:
            return False
        orphaned = [child.node_id for child in layout.nodes.values() if child.parent_id == node_id]
        for child_id in orphaned:
            self.remove_node(child_id)
        layout.nodes.pop(node_id, None)
        self._dirty = True
        return True

    def save_user_layout(self) -> None:
        if self._layout is None:
            logger.debug("Layout %s for %s was never loaded; nothing to save", self.layout_id, self._identity.user_id)
            return
        self._store.set_user_layout(self._identity, self._profile, self._layout)
        self._dirty = False

    @property
    def has_unsaved_changes(self) -> bool:
        return self._dirty

    def __repr__(self) -> str:
        return (
            f"UserLayoutManager(user_id={self._identity.user_id!r}, "
            f"profile={self._profile.name!r}, layout_id={self.layout_id})"
        )


def build_layout_manager(identity: Identity, profile: UserProfile, store: "LayoutStore") -> UserLayoutManager:
    return UserLayoutManager(identity, profile, store)


__all__ = [
    "LayoutNode",
    "UserLayout",
    "UserLayoutManager",
    "build_layout_manager",
]
