"""Tests for metadata parsing."""

import json

import pytest
from pydantic import BaseModel, Field

from ishikawa.errors import MetadataParseError
from ishikawa.tools.metadata import function_schema, parse_metadata, parse_metadata_async


class TestParseMetadata:

    def test_inline_json(self) -> None:
        metadata = parse_metadata('{"name": "echo", "description": "returns input", "parameters": {}}')
        assert metadata.name == "echo"
        assert metadata.description == "returns input"
        assert metadata.parameters == {}
        assert metadata.dependencies == {}

    def test_path_to_json_file(self, tmp_path) -> None:
        path = tmp_path / "echo.json"
        path.write_text(json.dumps({
            "name": "echo",
            "description": "returns input",
            "parameters": {"type": "object"},
            "dependencies": {"requests": ">=2"},
        }))

        metadata = parse_metadata(str(path))

        assert metadata.parameters == {"type": "object"}
        assert metadata.dependencies == {"requests": ">=2"}

    def test_extra_keys_are_preserved(self) -> None:
        raw = {"type": "function", "name": "echo", "description": "d", "parameters": {}}
        metadata = parse_metadata(json.dumps(raw))
        assert metadata.to_json_dict() == raw

    def test_neither_json_nor_file(self, tmp_path) -> None:
        with pytest.raises(MetadataParseError) as excinfo:
            parse_metadata(str(tmp_path / "missing.json"))
        assert excinfo.value.__cause__ is not None

    def test_file_with_invalid_json(self, tmp_path) -> None:
        path = tmp_path / "broken.json"
        path.write_text("{not json")
        with pytest.raises(MetadataParseError, match="Could not parse JSON"):
            parse_metadata(str(path))

    def test_json_must_be_an_object(self) -> None:
        with pytest.raises(MetadataParseError, match="JSON object"):
            parse_metadata("[1, 2, 3]")

    def test_missing_required_fields(self) -> None:
        with pytest.raises(MetadataParseError, match="Invalid tool metadata") as excinfo:
            parse_metadata('{"name": "echo"}')
        assert excinfo.value.tool_name == "echo"

    @pytest.mark.asyncio
    async def test_async_variant(self) -> None:
        metadata = await parse_metadata_async('{"name": "a", "description": "b", "parameters": null}')
        assert metadata.name == "a"
        assert metadata.parameters is None


class CalculatorInput(BaseModel):
    a: float = Field(..., description="First number")
    b: float = Field(..., description="Second number")


def test_function_schema_from_model() -> None:
    schema = function_schema("calculator", "Adds numbers", CalculatorInput, {"mathlib": "^1.0"})

    assert schema["type"] == "function"
    assert schema["name"] == "calculator"
    assert schema["dependencies"] == {"mathlib": "^1.0"}
    assert "$schema" not in schema["parameters"]
    assert "additionalProperties" not in schema["parameters"]
    assert set(schema["parameters"]["properties"]) == {"a", "b"}

    # The derived dict is valid registration metadata
    assert parse_metadata(json.dumps(schema)).name == "calculator"
