"""Tests for best-effort JSON extraction."""

from src.llm_json import extract_json


class TestExtractJson:
    def test_json_inside_prose(self):
        text = 'Here you go:\n```json\n{"selectedIds": ["rec1"], "intent": "Commercial"}\n```\nThanks'
        result = extract_json(text)
        assert result["selectedIds"] == ["rec1"]
        assert result["parsed"] is True

    def test_unparseable_keeps_raw(self):
        result = extract_json("I could not decide.", default={"titles": []})
        assert result == {"titles": [], "raw": "I could not decide.", "parsed": False}

    def test_broken_json(self):
        result = extract_json('{"title": "missing quote}')
        assert result["parsed"] is False

    def test_default_is_not_mutated(self):
        default = {"titles": []}
        extract_json("nope", default=default)
        assert default == {"titles": []}
