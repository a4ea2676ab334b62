"""
JSON schema validation for treecop offenses.

This module provides JSON schema definitions and validation helpers to ensure
offenses conform to a well-defined contract for downstream tools.
"""

from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import jsonschema

from .nodes import LineIndex

# Current protocol version
PROTOCOL_VERSION = "1"
ENGINE_VERSION = "0.1.0"

_RANGE_SCHEMA = {
    "type": "object",
    "properties": {
        "startLine": {"type": "integer", "minimum": 1},
        "startCol": {"type": "integer", "minimum": 0},
        "endLine": {"type": "integer", "minimum": 1},
        "endCol": {"type": "integer", "minimum": 0},
    },
    "required": ["startLine", "startCol", "endLine", "endCol"],
    "additionalProperties": False,
    "description": "Line/column range (1-based lines, 0-based byte columns)",
}

# JSON Schema for a single Offense
OFFENSE_JSON_SCHEMA = {
    "type": "object",
    "properties": {
        "rule_id": {
            "type": "string",
            "description": "Rule identifier that reported this offense",
        },
        "message": {
            "type": "string",
            "minLength": 1,
            "description": "Human-readable description of the issue",
        },
        "file_path": {
            "type": "string",
            "description": "Absolute native file path where the issue was found",
        },
        "uri": {
            "type": "string",
            "description": "File URI for editor integrations",
        },
        "start_byte": {
            "type": "integer",
            "minimum": 0,
            "description": "Start byte offset of the issue",
        },
        "end_byte": {
            "type": "integer",
            "minimum": 0,
            "description": "End byte offset of the issue (exclusive)",
        },
        "range": _RANGE_SCHEMA,
        "severity": {
            "type": "string",
            "enum": ["info", "warn", "error"],
            "description": "Severity level of the offense",
        },
        "autofix": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "start_byte": {"type": "integer", "minimum": 0},
                    "end_byte": {"type": "integer", "minimum": 0},
                    "replacement": {"type": "string"},
                    "range": _RANGE_SCHEMA,
                },
                "required": ["start_byte", "end_byte", "replacement", "range"],
                "additionalProperties": False,
            },
            "description": "Edits that correct the offense",
        },
        "meta": {
            "type": "object",
            "description": "Optional metadata about the offense",
        },
    },
    "required": ["rule_id", "message", "file_path", "uri", "start_byte", "end_byte", "range", "severity"],
    "additionalProperties": False,
}

FAILURE_JSON_SCHEMA = {
    "type": "object",
    "properties": {
        "rule_id": {"type": ["string", "null"]},
        "file_path": {"type": "string"},
        "line": {"type": ["integer", "null"], "minimum": 1},
        "column": {"type": ["integer", "null"], "minimum": 0},
        "error": {"type": "string"},
    },
    "required": ["rule_id", "file_path", "error"],
    "additionalProperties": False,
}

# JSON Schema for the full runner output
RUNNER_OUTPUT_SCHEMA = {
    "type": "object",
    "properties": {
        "treecop.protocol": {
            "type": "string",
            "description": "Protocol version",
        },
        "engine_version": {
            "type": "string",
            "description": "Engine version",
        },
        "files_scanned": {
            "type": "integer",
            "minimum": 0,
            "description": "Number of files that were scanned",
        },
        "rules_run": {
            "type": "integer",
            "minimum": 0,
            "description": "Number of rules that were executed",
        },
        "offenses": {
            "type": "array",
            "items": OFFENSE_JSON_SCHEMA,
            "description": "List of all offenses",
        },
        "failures": {
            "type": "array",
            "items": FAILURE_JSON_SCHEMA,
            "description": "Rule crashes, parse problems and rejected corrections",
        },
        "metrics": {
            "type": "object",
            "properties": {
                "parse_ms": {"type": "number", "minimum": 0},
                "rules_ms": {"type": "number", "minimum": 0},
                "total_ms": {"type": "number", "minimum": 0},
            },
            "required": ["parse_ms", "rules_ms", "total_ms"],
            "additionalProperties": False,
            "description": "Performance metrics",
        },
    },
    "required": ["treecop.protocol", "engine_version", "files_scanned", "rules_run",
                 "offenses", "failures", "metrics"],
    "additionalProperties": False,
}


def normalize_path_for_protocol(file_path: str) -> Tuple[str, str]:
    """
    Normalize a file path for protocol output.

    Args:
        file_path: File path (relative or absolute)

    Returns:
        Tuple of (absolute_native_path, file_uri)
    """
    path = Path(file_path).resolve()
    return str(path), path.as_uri()


def create_range_from_bytes(text: str, start_byte: int, end_byte: int,
                            line_index: Optional[LineIndex] = None) -> dict:
    """
    Create a protocol range object from byte offsets.

    Args:
        text: Source text
        start_byte: Start byte offset
        end_byte: End byte offset
        line_index: Prebuilt index for ``text``, if the caller has one

    Returns:
        Range dictionary with startLine, startCol, endLine, endCol
    """
    index = line_index or LineIndex(text.encode("utf-8"))
    start_line, start_col = index.position(start_byte)
    end_line, end_col = index.position(end_byte)

    return {
        "startLine": start_line,
        "startCol": start_col,
        "endLine": end_line,
        "endCol": end_col,
    }


def validate_offenses(offenses: List[Dict[str, Any]]) -> List[str]:
    """
    Validate a list of offense dictionaries against the JSON schema.

    Returns:
        List of validation errors (empty if valid)
    """
    errors = []
    for i, offense in enumerate(offenses):
        try:
            jsonschema.validate(offense, OFFENSE_JSON_SCHEMA)
        except jsonschema.ValidationError as e:
            errors.append(f"Offense {i}: {e.message}")
    return errors


def validate_runner_output(output: Dict[str, Any]) -> List[str]:
    """
    Validate runner output against the schema.

    Returns:
        List of validation errors (empty if valid)
    """
    try:
        jsonschema.validate(output, RUNNER_OUTPUT_SCHEMA)
    except jsonschema.ValidationError as e:
        return [f"Output validation: {e.message}"]
    return []


def offenses_to_json(offenses: List[Any], text_cache: Optional[Dict[str, str]] = None) -> List[Dict[str, Any]]:
    """
    Convert Offense objects to JSON-serializable dictionaries.

    Args:
        offenses: List of Offense objects
        text_cache: Optional cache of absolute file path -> text for range conversion

    Returns:
        List of offense dictionaries conforming to protocol v1
    """
    if text_cache is None:
        text_cache = {}

    indexes: Dict[str, LineIndex] = {}
    result = []
    for offense in offenses:
        abs_path, uri = normalize_path_for_protocol(offense.file)
        text = text_cache.get(abs_path, "")
        if abs_path not in indexes:
            indexes[abs_path] = LineIndex(text.encode("utf-8"))
        index = indexes[abs_path]

        offense_dict = {
            "rule_id": offense.rule,
            "message": offense.message,
            "file_path": abs_path,
            "uri": uri,
            "start_byte": offense.start_byte,
            "end_byte": offense.end_byte,
            "range": create_range_from_bytes(text, offense.start_byte, offense.end_byte, index),
            "severity": offense.severity,
        }

        if offense.edits:
            offense_dict["autofix"] = [
                {
                    "start_byte": edit.start_byte,
                    "end_byte": edit.end_byte,
                    "replacement": edit.replacement,
                    "range": create_range_from_bytes(text, edit.start_byte, edit.end_byte, index),
                }
                for edit in offense.edits
            ]

        if offense.meta:
            offense_dict["meta"] = offense.meta

        result.append(offense_dict)

    return result


def failure_to_json(rule_id: Optional[str], file_path: str, error: str,
                    line: Optional[int] = None, column: Optional[int] = None) -> Dict[str, Any]:
    """Build one entry of the runner's ``failures`` list."""
    abs_path, _ = normalize_path_for_protocol(file_path)
    return {
        "rule_id": rule_id,
        "file_path": abs_path,
        "line": line,
        "column": column,
        "error": error,
    }
