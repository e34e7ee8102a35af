"""
Schema validation utilities for PolicyPath.

JSON Schema validation with clear error messages and a small auto-repair
pass for the formatting slips language models commonly make.
"""

import json
from copy import deepcopy
from pathlib import Path
from typing import Any, Optional, Union

from jsonschema import Draft7Validator, FormatChecker, ValidationError


QUIZ_QUESTION_SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "properties": {
        "question": {"type": "string", "minLength": 1},
        "options": {
            "type": "array",
            "items": {"type": "string", "minLength": 1},
            "minItems": 2,
        },
        "answer": {"type": "string", "minLength": 1},
    },
    "required": ["question", "options", "answer"],
    "additionalProperties": False,
}

PROFILE_SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "properties": {
        "owner_id": {"type": "string", "minLength": 1},
        "xp": {"type": "integer", "minimum": 0},
        "streak": {"type": "integer", "minimum": 0},
        "last_active_date": {"type": ["string", "null"], "format": "date"},
        "topics_mastered": {"type": "integer", "minimum": 0},
        "display_name": {"type": "string"},
        "created_at": {"type": "string"},
    },
    "required": ["owner_id", "xp", "streak", "topics_mastered", "created_at"],
}


class ValidationResult:
    """
    Result of a validation attempt.

    Attributes:
        valid: Whether data passed validation
        errors: List of error messages
        data: The validated data (may be modified if repair was attempted)
        repairs: List of repairs applied (for transparency)
    """

    def __init__(
        self,
        valid: bool,
        errors: list[str],
        data: Any = None,
        repairs: Optional[list[str]] = None,
    ):
        self.valid = valid
        self.errors = errors
        self.data = data
        self.repairs = repairs or []

    def __bool__(self) -> bool:
        return self.valid

    def __str__(self) -> str:
        if self.valid:
            msg = "Validation passed"
            if self.repairs:
                msg += f" (with {len(self.repairs)} repair(s))"
            return msg
        return f"Validation failed with {len(self.errors)} error(s):\n" + "\n".join(
            f"  - {error}" for error in self.errors
        )


class SchemaValidator:
    """
    JSON Schema validator with auto-repair capabilities.

    Usage:
        validator = SchemaValidator(QUIZ_QUESTION_SCHEMA)
        result = validator.validate(item, auto_repair=True)
        if result:
            question = result.data
    """

    def __init__(self, schema: Union[dict, Path, str]):
        """
        Initialize validator.

        Args:
            schema: Schema dict, or path to a JSON Schema file
        """
        if isinstance(schema, dict):
            self.schema = schema
        else:
            with open(Path(schema), "r", encoding="utf-8") as f:
                self.schema = json.load(f)
        self.validator = Draft7Validator(self.schema, format_checker=FormatChecker())

    def validate(self, data: Any, auto_repair: bool = False) -> ValidationResult:
        """
        Validate data against schema.

        Args:
            data: Data to validate
            auto_repair: If True, attempt to fix common validation errors

        Returns:
            ValidationResult with validation status and any errors
        """
        errors = [self._format_error(error) for error in self.validator.iter_errors(data)]

        if errors:
            if auto_repair and isinstance(data, dict):
                repaired, repairs = self._attempt_repair(data)
                if repairs:
                    result = self.validate(repaired, auto_repair=False)
                    result.repairs = repairs
                    return result
            return ValidationResult(valid=False, errors=errors, data=data)

        return ValidationResult(valid=True, errors=[], data=data)

    def _format_error(self, error: ValidationError) -> str:
        path = " -> ".join(str(p) for p in error.path) if error.path else "root"
        validator_name = getattr(error, "validator", "unknown")
        return f"At '{path}': {error.message} [validator={validator_name}]"

    def _attempt_repair(self, data: dict) -> tuple[dict, list[str]]:
        """
        Attempt to automatically fix common validation errors.

        Returns:
            Tuple of (repaired data, list of repairs applied)
        """
        repaired = deepcopy(data)
        repairs = []
        properties = self.schema.get("properties", {})

        # Strip unknown keys (additionalProperties: false)
        if self.schema.get("additionalProperties") is False:
            for key in list(repaired):
                if key not in properties:
                    del repaired[key]
                    repairs.append(f"Removed unknown key '{key}'")

        for key, spec in properties.items():
            if key not in repaired:
                continue
            value = repaired[key]
            expected = spec.get("type")

            # Coerce scalars to strings and trim whitespace
            if expected == "string" and isinstance(value, (int, float)) and not isinstance(value, bool):
                repaired[key] = str(value)
                repairs.append(f"Coerced '{key}' to string")
            elif expected == "string" and isinstance(value, str) and value != value.strip():
                repaired[key] = value.strip()
                repairs.append(f"Trimmed whitespace in '{key}'")
            elif expected == "array" and isinstance(value, list):
                items = [str(v).strip() if isinstance(v, (str, int, float)) else v for v in value]
                if items != value:
                    repaired[key] = items
                    repairs.append(f"Normalized items of '{key}'")

        return repaired, repairs


quiz_question_validator = SchemaValidator(QUIZ_QUESTION_SCHEMA)
profile_validator = SchemaValidator(PROFILE_SCHEMA)
