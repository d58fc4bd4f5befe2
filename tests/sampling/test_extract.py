import pytest

from github_profile_analyzer.sampling.extract import extract_json_blocks_from_text, parse_json_object


def test_extract_json_blocks_from_text():
    text = 'Here you go:\n```json\n{"a": 1}\n```\nand\n```\n{"b": 2}\n```'

    assert extract_json_blocks_from_text(text=text) == ['{"a": 1}', '{"b": 2}']


def test_unterminated_block_is_ignored():
    assert extract_json_blocks_from_text(text='```json\n{"a": 1}') == []


class TestParseJsonObject:
    def test_bare_json(self):
        assert parse_json_object(text='  {"profileScore": 70}  ') == {"profileScore": 70}

    def test_fenced_json(self):
        assert parse_json_object(text='Sure!\n```json\n{"profileScore": 70}\n```') == {"profileScore": 70}

    def test_sentinel(self):
        assert parse_json_object(text='{"error":"insufficient_data"}') == {"error": "insufficient_data"}

    @pytest.mark.parametrize(
        "text",
        [
            "I cannot help with that.",
            '```json\n{"a": 1}\n```\n```json\n{"b": 2}\n```',
            "```json\n{not json}\n```",
            "[1, 2, 3]",
            '"just a string"',
        ],
    )
    def test_invalid(self, text: str):
        with pytest.raises(ValueError):  # noqa: PT011
            _ = parse_json_object(text=text)
