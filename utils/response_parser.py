"""
Turn raw completion text into validated stage results.

Providers don't enforce a schema, so a structured answer may arrive as bare
JSON or wrapped in a ```json fence with prose around it.
"""

import json
import re
import logging
from typing import Any, Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from utils.exceptions import MalformedCompletion

logger = logging.getLogger(__name__)

ResultT = TypeVar("ResultT", bound=BaseModel)

JSON_FENCE_PATTERN = re.compile(r"```json\s*([\s\S]*?)\s*```")


def extract_json(text: str) -> Any:
    """Extract JSON from text response"""
    if text is None:
        raise MalformedCompletion("Completion was empty")

    try:
        # Try direct parsing first
        return json.loads(text.strip())
    except (json.JSONDecodeError, RecursionError):
        pass

    match = JSON_FENCE_PATTERN.search(text)
    if match:
        try:
            return json.loads(match.group(1))
        except (json.JSONDecodeError, RecursionError) as e:
            logger.error(f"Fenced JSON block is invalid: {e}")
            raise MalformedCompletion(
                f"Fenced JSON block could not be parsed: {e}",
                context={"preview": text[:200]},
            ) from e

    logger.error(f"Could not extract JSON from: {text[:500]}")
    raise MalformedCompletion(
        "No valid JSON found in completion",
        context={"preview": text[:200]},
    )


def parse_completion(text: str, result_type: Type[ResultT]) -> ResultT:
    """Extract JSON and validate it as `result_type`."""
    data = extract_json(text)
    if not isinstance(data, dict):
        raise MalformedCompletion(
            f"Expected a JSON object for {result_type.__name__}, got {type(data).__name__}"
        )
    try:
        return result_type.model_validate(data)
    except PydanticValidationError as e:
        fields = [".".join(str(p) for p in err["loc"]) for err in e.errors()]
        raise MalformedCompletion(
            f"{result_type.__name__} is missing or has invalid fields: {', '.join(fields)}",
            context={"fields": fields},
        ) from e
