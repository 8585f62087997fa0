"""
Service schema validation - Check parsed service-schema documents.

The service schema describes an architecture at a high level (services
and their outgoing integrations). It is imported and then auto-laid out.

validate_service_schema never raises on bad input; it returns every
violation it finds, each with a path such as /services[2]/type.
"""

from dataclasses import dataclass
from typing import Any

from .registry import node_type_keys, edge_type_keys


@dataclass
class SchemaError:
    """A single violation found in a service-schema document."""
    path: str
    message: str

    def to_dict(self) -> dict:
        return {"path": self.path, "message": self.message}

    def __str__(self) -> str:
        return f"{self.path}: {self.message}"


def service_schema_json_schema() -> dict:
    """
    JSON Schema (draft 2020-12) for the service-schema format.

    The type enums are generated from the registry, so new types
    appear here without edits. Published for external tooling.
    """
    return {
        "$schema": "https://json-schema.org/draft/2020-12/schema",
        "title": "ServiceSchema",
        "description": "Input format for describing a microservice architecture.",
        "type": "object",
        "required": ["services"],
        "properties": {
            "version": {
                "type": "string",
                "description": 'Schema version (e.g. "1.0").',
            },
            "services": {
                "type": "array",
                "description": "List of service definitions.",
                "items": {
                    "type": "object",
                    "required": ["id", "name", "type"],
                    "properties": {
                        "id": {"type": "string", "description": "Unique identifier for the service."},
                        "name": {"type": "string", "description": "Human-readable display name."},
                        "type": {
                            "type": "string",
                            "enum": node_type_keys(),
                            "description": "Service type (determines visual appearance).",
                        },
                        "namespace": {"type": "string", "description": "Optional namespace for visual grouping."},
                        "integrations": {
                            "type": "array",
                            "description": "List of outgoing integrations.",
                            "items": {
                                "type": "object",
                                "required": ["target"],
                                "properties": {
                                    "target": {"type": "string", "description": "ID of the target service."},
                                    "type": {
                                        "type": "string",
                                        "enum": edge_type_keys(),
                                        "description": "Integration type (determines badge style).",
                                    },
                                    "label": {"type": "string", "description": "Optional text label for the connection."},
                                },
                            },
                        },
                    },
                },
            },
        },
    }


def _is_nonempty_str(value: Any) -> bool:
    return isinstance(value, str) and value != ""


def validate_service_schema(data: Any) -> list[SchemaError]:
    """
    Validate a parsed JSON value against the service-schema format.

    Checks for:
    - Root is an object (stops here otherwise)
    - "services" is an array (stops here otherwise)
    - Each service is an object with string id/name/type
    - Unique service ids (every duplicate is reported)
    - Known node type, optional string namespace
    - Optional integrations array of objects with a string target,
      a known integration type and a string label

    Args:
        data: The parsed JSON value

    Returns:
        List of SchemaError objects (empty means valid)
    """
    errors: list[SchemaError] = []

    if not isinstance(data, dict):
        errors.append(SchemaError("/", "Root must be a JSON object."))
        return errors

    services = data.get("services")
    if not isinstance(services, list):
        errors.append(SchemaError("/services", '"services" must be an array.'))
        return errors

    valid_node_types = node_type_keys()
    valid_edge_types = edge_type_keys()
    seen_ids: set[str] = set()

    for i, svc in enumerate(services):
        path = f"/services[{i}]"

        if not isinstance(svc, dict):
            errors.append(SchemaError(path, "Each service must be an object."))
            continue

        # id
        svc_id = svc.get("id")
        if not _is_nonempty_str(svc_id):
            errors.append(SchemaError(f"{path}/id", '"id" is required and must be a string.'))
        else:
            if svc_id in seen_ids:
                errors.append(SchemaError(f"{path}/id", f'Duplicate service id "{svc_id}".'))
            seen_ids.add(svc_id)

        # name
        name = svc.get("name")
        if not _is_nonempty_str(name):
            errors.append(SchemaError(f"{path}/name", '"name" is required and must be a string.'))
        elif not name.strip():
            errors.append(SchemaError(f"{path}/name", '"name" must not be blank.'))

        # type
        svc_type = svc.get("type")
        if not _is_nonempty_str(svc_type):
            errors.append(SchemaError(f"{path}/type", '"type" is required and must be a string.'))
        elif svc_type not in valid_node_types:
            errors.append(SchemaError(
                f"{path}/type",
                f'Invalid type "{svc_type}". Valid types: {", ".join(valid_node_types)}.',
            ))

        # namespace (optional)
        if "namespace" in svc and not isinstance(svc["namespace"], str):
            errors.append(SchemaError(f"{path}/namespace", '"namespace" must be a string if provided.'))

        # integrations (optional)
        if "integrations" not in svc:
            continue
        integrations = svc["integrations"]
        if not isinstance(integrations, list):
            errors.append(SchemaError(f"{path}/integrations", '"integrations" must be an array.'))
            continue

        for j, integ in enumerate(integrations):
            i_path = f"{path}/integrations[{j}]"

            if not isinstance(integ, dict):
                errors.append(SchemaError(i_path, "Each integration must be an object."))
                continue

            if not _is_nonempty_str(integ.get("target")):
                errors.append(SchemaError(f"{i_path}/target", '"target" is required and must be a string.'))

            if "type" in integ:
                integ_type = integ["type"]
                if not isinstance(integ_type, str) or integ_type not in valid_edge_types:
                    errors.append(SchemaError(
                        f"{i_path}/type",
                        f'Invalid integration type "{integ_type}". Valid types: {", ".join(valid_edge_types)}.',
                    ))

            if "label" in integ and not isinstance(integ["label"], str):
                errors.append(SchemaError(f"{i_path}/label", '"label" must be a string if provided.'))

    return errors
