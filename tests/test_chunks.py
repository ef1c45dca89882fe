"""Tests for chunk splitting."""

from streamshell.stream.chunks import Fragment, split_chunk


class TestSplitChunk:
    def test_keyed_lines(self):
        text = 'event: delta\ndata: {"text": "hi"}\n'
        assert split_chunk(text) == [
            Fragment("event", "delta"),
            Fragment("data", '{"text": "hi"}'),
        ]

    def test_bare_lines_are_unkeyed(self):
        assert split_chunk("hello world\n") == [Fragment(None, "hello world")]

    def test_mixed_order_preserved(self):
        fragments = split_chunk("one\ndata: 1\ntwo\n")
        assert [f.key for f in fragments] == [None, "data", None]
        assert [f.value for f in fragments] == ["one", "1", "two"]

    def test_blank_lines_dropped(self):
        assert split_chunk("\n\n  \n") == []

    def test_key_with_space_is_not_a_key(self):
        # "not a key" contains whitespace before the colon
        assert split_chunk("not a key: value") == [Fragment(None, "not a key: value")]

    def test_json_blob_returned_whole(self):
        text = '{"a": 1}\n{"b": 2}'
        assert split_chunk(text) == [Fragment(None, text)]

    def test_value_whitespace_trimmed(self):
        assert split_chunk("id:   42  ") == [Fragment("id", "42")]

    def test_empty_value(self):
        assert split_chunk("data:") == [Fragment("data", "")]
