"""
Schema Validation - OpenAPI v3 schema for the SimpleApp resource.

The cluster enforces this schema through the CRD before a declaration ever
reaches the reconciler. It is kept here so clients can check a document
locally before submitting it.
"""

import logging
from typing import Any, Dict, Optional, Tuple

from jsonschema import Draft7Validator, ValidationError

from declaration import API_VERSION, KIND

logger = logging.getLogger(__name__)

SPEC_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["image", "containerPort"],
    "properties": {
        "image": {"type": "string", "minLength": 1},
        "replicas": {"type": "integer", "minimum": 1, "default": 1},
        "containerPort": {"type": "integer", "minimum": 1, "maximum": 65535},
        "servicePort": {"type": "integer", "default": 80},
    },
}

STATUS_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "readyReplicas": {"type": "integer"},
        "serviceStatus": {"type": "string"},
    },
}

DECLARATION_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["apiVersion", "kind", "metadata", "spec"],
    "properties": {
        "apiVersion": {"type": "string", "const": API_VERSION},
        "kind": {"type": "string", "const": KIND},
        "metadata": {
            "type": "object",
            "required": ["name"],
            "properties": {
                "name": {
                    "type": "string",
                    "pattern": "^[a-z0-9]([-a-z0-9]*[a-z0-9])?$",
                    "maxLength": 63,
                },
                "namespace": {"type": "string"},
            },
        },
        "spec": SPEC_SCHEMA,
        "status": STATUS_SCHEMA,
    },
}


def _validate(
    document: Dict[str, Any], schema: Dict[str, Any]
) -> Tuple[bool, Optional[str]]:
    try:
        validator = Draft7Validator(
            schema, format_checker=Draft7Validator.FORMAT_CHECKER
        )
        errors = sorted(
            validator.iter_errors(document), key=lambda e: [str(p) for p in e.path]
        )

        if not errors:
            return True, None

        error_messages = []
        for error in errors:
            path = ".".join(str(p) for p in error.absolute_path) or "(root)"
            error_messages.append(f"{path}: {error.message}")

        return False, "; ".join(error_messages)

    except ValidationError as e:
        return False, f"Validation error: {str(e)}"


def validate_spec(spec: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    """
    Validate a SimpleApp spec.

    Args:
        spec: The spec section of a declaration

    Returns:
        Tuple of (is_valid, error_message)
    """
    return _validate(spec, SPEC_SCHEMA)


def validate_declaration(document: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    """
    Validate a full SimpleApp document (apiVersion, kind, metadata, spec).

    Args:
        document: The declaration document

    Returns:
        Tuple of (is_valid, error_message)
    """
    return _validate(document, DECLARATION_SCHEMA)
