"""Kind definition loading - YAML files describing request kinds."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import jsonschema
import yaml

from .kinds import KindDefinition, KindRegistry, RoleSpec
from .schema import check_schema

logger = logging.getLogger(__name__)


class KindDefinitionError(Exception):
    """Raised when a kind definition is malformed."""
    pass


def load_kinds_from_yaml(
    path: str | Path,
    registry: KindRegistry,
) -> list[KindDefinition]:
    """
    Load request kinds from a YAML file into the registry.

    Each kind carries its JSON Schema inline (``schema``) or in a JSON/YAML
    file (``schema_file``, relative to the definitions file).

    Raises:
        KindDefinitionError: If a definition or its schema is invalid
    """
    path = Path(path)
    if not path.exists():
        logger.info(f"Kinds file not found: {path}")
        return []

    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)

    if not data or "kinds" not in data:
        return []

    loaded = []
    for kind_data in data["kinds"]:
        kind = _parse_kind(kind_data, path.parent)
        registry.register(kind)
        loaded.append(kind)

    logger.info(f"Loaded {len(loaded)} request kinds from {path}")
    return loaded


def _parse_kind(data: dict[str, Any], base_dir: Path) -> KindDefinition:
    """Parse a single kind from a dictionary."""
    name = data.get("name")
    if not name:
        raise KindDefinitionError("Kind definition without a name")

    entity_type = data.get("entity_type")
    if not entity_type:
        raise KindDefinitionError(f"Kind {name}: entity_type is required")

    schema = _load_schema(name, data, base_dir)
    try:
        check_schema(schema)
    except jsonschema.SchemaError as e:
        raise KindDefinitionError(f"Kind {name}: invalid schema: {e}") from e

    role = None
    if data.get("role"):
        r = data["role"]
        if isinstance(r, str):
            role = RoleSpec(role=r)
        else:
            role = RoleSpec(
                role=r.get("role"),
                role_field=r.get("role_field"),
                scope_field=r.get("scope_field"),
            )

    return KindDefinition(
        name=name,
        schema=schema,
        entity_type=entity_type,
        reference_fields=dict(data.get("reference_fields", {})),
        scope_field=data.get("scope_field"),
        contact_path=data.get("contact_path"),
        role=role,
        templates=dict(data.get("templates", {})),
        description=data.get("description", ""),
    )


def _load_schema(name: str, data: dict[str, Any], base_dir: Path) -> dict[str, Any]:
    if "schema" in data:
        return data["schema"]

    schema_file = data.get("schema_file")
    if not schema_file:
        raise KindDefinitionError(f"Kind {name}: schema or schema_file is required")

    schema_path = Path(schema_file)
    if not schema_path.is_absolute():
        schema_path = base_dir / schema_path
    if not schema_path.exists():
        raise KindDefinitionError(f"Kind {name}: schema file not found: {schema_path}")

    with open(schema_path, "r", encoding="utf-8") as f:
        if schema_path.suffix == ".json":
            return json.load(f)
        return yaml.safe_load(f)
