"""Tests for structured response parsing."""

import pytest

from goshi.llm import ResponseType, StructuredParser, StructuredResponse, parse_response


class TestParse:
    """Tests for parse_response()."""

    def test_plain_text(self):
        result = parse_response("  Here is the answer.\n")
        assert result.type is ResponseType.TEXT
        assert result.text == "Here is the answer."
        assert result.raw_text == "  Here is the answer.\n"

    @pytest.mark.parametrize("raw", ["", "   \n\t"])
    def test_empty_is_error(self, raw):
        result = parse_response(raw)
        assert result.type is ResponseType.ERROR
        assert result.error == "empty response from LLM"

    def test_typed_text(self):
        result = parse_response('{"type": "text", "text": "hello"}')
        assert result.type is ResponseType.TEXT
        assert result.text == "hello"

    def test_typed_action(self):
        result = parse_response('{"type": "action", "action": {"tool": "fs.read", "args": {"path": "a.txt"}}}')
        assert result.type is ResponseType.ACTION
        assert result.action.tool == "fs.read"
        assert result.action.args == {"path": "a.txt"}

    def test_typed_error(self):
        result = parse_response('{"type": "error", "error": "cannot comply"}')
        assert result.type is ResponseType.ERROR
        assert result.error == "cannot comply"

    def test_bare_tool_call(self):
        result = parse_response('{"tool": "fs.list", "args": {"path": "."}}')
        assert result.type is ResponseType.ACTION
        assert result.action.tool == "fs.list"

    def test_missing_args_default_empty(self):
        result = parse_response('{"tool": "fs.list"}')
        assert result.action.args == {}

    def test_fenced_block(self):
        raw = 'Let me look.\n```json\n{"type": "action", "action": {"tool": "fs.read", "args": {"path": "x"}}}\n```\n'
        result = parse_response(raw)
        assert result.type is ResponseType.ACTION
        assert result.raw_text == raw

    def test_unrecognized_json_is_text(self):
        result = parse_response('{"answer": 42}')
        assert result.type is ResponseType.TEXT
        assert result.text == '{"answer": 42}'

    def test_malformed_json_is_text(self):
        assert parse_response('{"type": "action", ').type is ResponseType.TEXT


class TestValidator:
    def test_invalid_tool_becomes_error(self):
        def reject(tool, args):
            raise ValueError(f"unknown tool: {tool}")

        parser = StructuredParser(reject)
        result = parser.parse('{"tool": "fs.delete", "args": {}}')
        assert result.type is ResponseType.ERROR
        assert result.error == "invalid tool call: unknown tool: fs.delete"

    def test_validator_sees_call(self):
        seen = []
        parser = StructuredParser()
        parser.set_tool_validator(lambda tool, args: seen.append((tool, args)))
        parser.parse('{"tool": "fs.read", "args": {"path": "a"}}')
        assert seen == [("fs.read", {"path": "a"})]

    def test_text_not_validated(self):
        def boom(tool, args):
            raise AssertionError("should not be called")

        assert StructuredParser(boom).parse("hello").type is ResponseType.TEXT

    def test_none_keeps_existing_validator(self):
        def reject(tool, args):
            raise ValueError("no")

        parser = StructuredParser(reject)
        parser.set_tool_validator(None)
        assert parser.parse('{"tool": "x"}').type is ResponseType.ERROR

    def test_action_without_validator(self):
        result = StructuredParser().parse('{"tool": "fs.read"}')
        assert result.type is ResponseType.ACTION
        assert result.action.tool == "fs.read"

    def test_action_missing_call_becomes_error(self):
        class HollowParser(StructuredParser):
            def _from_json(self, text):
                return StructuredResponse(type=ResponseType.ACTION)

        result = HollowParser().parse('{"tool": "fs.read"}')
        assert result.type is ResponseType.ERROR
        assert result.error == "action response without a tool call"
