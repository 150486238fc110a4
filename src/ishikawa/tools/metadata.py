"""
Metadata parsing for tool registration.

Metadata arrives either as a JSON document or as the path of a JSON file.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Type

from pydantic import BaseModel, ValidationError

from ..errors import MetadataParseError
from .base import ToolMetadata

logger = logging.getLogger(__name__)


def _load_json(value: str) -> Any:
    try:
        return json.loads(value)
    except json.JSONDecodeError as inline_error:
        logger.debug(f"Metadata is not inline JSON ({inline_error}), trying it as a path")

    try:
        content = Path(value).read_text(encoding="utf-8")
    except (OSError, ValueError) as e:
        raise MetadataParseError(f"Could not parse JSON: input is neither JSON nor a readable file ({e})") from e

    try:
        return json.loads(content)
    except json.JSONDecodeError as e:
        raise MetadataParseError(f"Could not parse JSON from {value}: {e}") from e


def parse_metadata(value: str) -> ToolMetadata:
    """
    Turn a JSON string or the path of a JSON file into tool metadata.

    Args:
        value: Inline JSON, or a filesystem path to a JSON file

    Returns:
        Parsed metadata; keys beyond the known fields are preserved

    Raises:
        MetadataParseError: If no JSON object describing a tool can be read
    """
    data = _load_json(value)
    if not isinstance(data, dict):
        raise MetadataParseError(f"Metadata must be a JSON object, got {type(data).__name__}")

    try:
        return ToolMetadata.model_validate(data)
    except ValidationError as e:
        raise MetadataParseError(f"Invalid tool metadata: {e}", tool_name=data.get("name")) from e


async def parse_metadata_async(value: str) -> ToolMetadata:
    """Run parse_metadata off the event loop; a path argument means file I/O."""
    return await asyncio.to_thread(parse_metadata, value)


def function_schema(
    name: str,
    description: str,
    model: Type[BaseModel],
    dependencies: Optional[Dict[str, str]] = None
) -> Dict[str, Any]:
    """
    Derive function-call metadata from a pydantic input model.

    The result is ready to be passed (as JSON) to registration.

    Example:
        class CalculatorInput(BaseModel):
            a: float = Field(..., description="First number")
            b: float = Field(..., description="Second number")

        metadata = function_schema("calculator", "Adds numbers", CalculatorInput)
    """
    schema = model.model_json_schema()
    parameters = {k: v for k, v in schema.items() if k not in ("$schema", "additionalProperties")}
    return {
        "type": "function",
        "name": name,
        "description": description,
        "parameters": parameters,
        "dependencies": dict(dependencies or {}),
    }
