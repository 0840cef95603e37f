"""
Schema Validation - JSON Schema checks for load balancer documents.

Validates the documents handed to the CLI (a load balancer definition, or a
status snapshot written by a previous apply) before any appliance is touched.
"""

import logging
from typing import Any, Dict, Optional, Tuple

from jsonschema import Draft7Validator
from jsonschema import ValidationError as SchemaValidationError

from lbsync.models import LB_METHODS, MONITOR_TYPES

logger = logging.getLogger(__name__)

PORT_SCHEMA = {"type": "integer", "minimum": 1, "maximum": 65535}

NODE_SCHEMA = {
    "type": "object",
    "required": ["host"],
    "properties": {
        "name": {"type": "string"},
        "host": {"type": "string", "minLength": 1},
        "labels": {"type": "object", "additionalProperties": {"type": "string"}},
    },
}

PROVIDER_SCHEMA = {
    "type": "object",
    "required": ["vendor", "host", "port"],
    "properties": {
        "vendor": {"type": "string", "minLength": 1},
        "host": {"type": "string", "minLength": 1, "maxLength": 255},
        "port": PORT_SCHEMA,
        "creds": {"type": "string"},
        "partition": {"type": "string"},
        "validate_certs": {"type": "boolean"},
        "validatecerts": {"type": "boolean"},
        "lb_method": {"type": "string"},
        "lbmethod": {"type": "string"},
        "debug": {"type": "boolean"},
    },
}

LOAD_BALANCER_SCHEMA = {
    "type": "object",
    "required": ["name", "vip", "ports", "monitor", "provider"],
    "properties": {
        "name": {"type": "string", "minLength": 1},
        "vip": {"type": "string", "minLength": 7, "maxLength": 15},
        "ports": {
            "type": "array",
            "minItems": 1,
            "maxItems": 128,
            "uniqueItems": True,
            "items": PORT_SCHEMA,
        },
        "monitor": {
            "type": "object",
            "required": ["path", "port"],
            "properties": {
                "path": {"type": "string"},
                "port": PORT_SCHEMA,
                "monitor_type": {"enum": list(MONITOR_TYPES)},
                "monitortype": {"enum": list(MONITOR_TYPES)},
            },
        },
        "provider": PROVIDER_SCHEMA,
        "nodes": {"type": "array", "items": NODE_SCHEMA},
    },
}

STATUS_SCHEMA = {
    "type": "object",
    "required": ["vips", "pools", "monitor", "provider"],
    "properties": {
        "vips": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["name"],
                "properties": {
                    "name": {"type": "string"},
                    "ip": {"type": "string"},
                    "port": {"type": "integer"},
                    "pool": {"type": "string"},
                },
            },
        },
        "pools": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["name"],
                "properties": {
                    "name": {"type": "string"},
                    "monitor": {"type": "string"},
                    "members": {
                        "type": "array",
                        "items": {
                            "type": "object",
                            "required": ["node", "port"],
                            "properties": {
                                "node": NODE_SCHEMA,
                                "port": {"type": "integer"},
                            },
                        },
                    },
                },
            },
        },
        "monitor": {"type": "object"},
        "ports": {"type": "array", "items": {"type": "integer"}},
        "nodes": {"type": "array", "items": NODE_SCHEMA},
        "provider": PROVIDER_SCHEMA,
    },
}


def validate_against_schema(
    data: Any, schema: Dict[str, Any]
) -> Tuple[bool, Optional[str]]:
    """
    Validate a document against a JSON Schema.

    Args:
        data: The decoded document
        schema: The JSON Schema to validate against

    Returns:
        Tuple of (is_valid, error_message)
    """
    try:
        validator = Draft7Validator(schema)
        errors = sorted(validator.iter_errors(data), key=lambda e: list(e.absolute_path))

        if not errors:
            return True, None

        error_messages = []
        for error in errors:
            path = ".".join(str(p) for p in error.absolute_path) or "(root)"
            error_messages.append(f"{path}: {error.message}")

        return False, "; ".join(error_messages)

    except SchemaValidationError as e:
        return False, f"Validation error: {str(e)}"


def validate_load_balancer(data: Any) -> Tuple[bool, Optional[str]]:
    """Validate a load balancer document, including its lb method if set."""
    is_valid, error = validate_against_schema(data, LOAD_BALANCER_SCHEMA)
    if not is_valid:
        return is_valid, error

    provider = data["provider"]
    lb_method = provider.get("lb_method") or provider.get("lbmethod")
    if lb_method and lb_method.upper() not in LB_METHODS:
        return False, (
            f"provider.lb_method: {lb_method!r} is not one of {list(LB_METHODS)}"
        )
    return True, None


def validate_status(data: Any) -> Tuple[bool, Optional[str]]:
    """Validate a status snapshot produced by a previous apply."""
    return validate_against_schema(data, STATUS_SCHEMA)
