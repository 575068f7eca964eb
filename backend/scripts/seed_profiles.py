"""Seed system profiles, stylesheets and user-agent mappings from a JSON file.

Expected shape::

    {
      "structure_stylesheets": [{"name": "tabs", "uri": "tabs.xsl"}],
      "theme_stylesheets": [{"name": "universality", "uri": "u.xsl", "structure": "tabs"}],
      "profiles": [
        {"name": "default", "layout_id": 1, "structure": "tabs", "theme": "universality",
         "user_agents": ["null", "Mozilla/5.0"]}
      ]
    }
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import ValidationError

from userprefs.db.session import create_schema
from userprefs.gateway import SqlPreferencesGateway
from userprefs.user_preferences import (
    StructureStylesheetDescription,
    ThemeStylesheetDescription,
    UserProfile,
)

logger = logging.getLogger("seed")


def seed(payload: Dict[str, Any], gateway: Optional[SqlPreferencesGateway] = None) -> int:
    gateway = gateway or SqlPreferencesGateway()
    structure_ids: Dict[str, int] = {}
    theme_ids: Dict[str, int] = {}

    for entry in payload.get("structure_stylesheets", []):
        try:
            description = StructureStylesheetDescription.model_validate({"stylesheet_id": 0, **entry})
        except ValidationError as exc:
            logger.warning("Skipping invalid structure stylesheet: %s", exc)
            continue
        structure_ids[description.name] = gateway.register_structure_stylesheet(description)

    for entry in payload.get("theme_stylesheets", []):
        structure_name = entry.get("structure")
        if structure_name not in structure_ids:
            logger.warning("Skipping theme %s; unknown structure %s", entry.get("name"), structure_name)
            continue
        fields = {key: value for key, value in entry.items() if key != "structure"}
        try:
            description = ThemeStylesheetDescription.model_validate(
                {"stylesheet_id": 0, "structure_stylesheet_id": structure_ids[structure_name], **fields}
            )
        except ValidationError as exc:
            logger.warning("Skipping invalid theme stylesheet: %s", exc)
            continue
        theme_ids[description.name] = gateway.register_theme_stylesheet(description)

    seeded = 0
    for entry in payload.get("profiles", []):
        profile = gateway.register_profile(
            UserProfile(
                profile_id=0,
                name=entry["name"],
                description=entry.get("description", ""),
                is_system=True,
                layout_id=int(entry.get("layout_id", 0)),
                structure_stylesheet_id=structure_ids.get(entry.get("structure", ""), 0),
                theme_stylesheet_id=theme_ids.get(entry.get("theme", ""), 0),
            )
        )
        for user_agent in entry.get("user_agents", []):
            gateway.map_user_agent(user_agent, profile.profile_id)
        seeded += 1
    logger.info("Seeded %d system profiles", seeded)
    return seeded


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Seed system profiles into the preference store.")
    parser.add_argument("path", type=Path)
    parser.add_argument("--create-schema", action="store_true", help="Create tables without running migrations.")
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")

    with args.path.open(encoding="utf-8") as handle:
        payload = json.load(handle)
    if args.create_schema:
        create_schema()
    seed(payload)
    return 0


if __name__ == "__main__":
    sys.exit(main())
