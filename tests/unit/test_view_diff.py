"""Tests for block replacement in a rendered view."""

from __future__ import annotations

from times_news.blocks import DividerBlock, RawBlock, SectionBlock
from times_news.view_diff import replace_block


def raw(block_id: str | None) -> RawBlock:
    data = {"type": "section", "text": {"type": "mrkdwn", "text": str(block_id)}}
    if block_id is not None:
        data["block_id"] = block_id
    return RawBlock(data=data)


class TestReplaceBlock:
    def test_replaces_matching_block(self):
        x, y, z = raw("x"), raw("y"), raw("z")
        new = SectionBlock(text="new", block_id="y")

        result = replace_block([x, y, z], "y", new)

        assert result == [x, new, z]

    def test_no_match_returns_equal_copy(self):
        blocks = [raw("x"), raw("y")]
        result = replace_block(blocks, "missing", SectionBlock(text="new"))
        assert result == blocks
        assert result is not blocks

    def test_blocks_without_id_never_match(self):
        blocks = [raw(None), DividerBlock(), raw("")]
        result = replace_block(blocks, "", SectionBlock(text="new"))
        assert result == blocks

    def test_input_is_not_modified(self):
        blocks = [raw("x"), raw("y")]
        snapshot = list(blocks)
        replace_block(blocks, "x", SectionBlock(text="new"))
        assert blocks == snapshot

    def test_every_match_is_replaced(self):
        new = SectionBlock(text="new")
        result = replace_block([raw("dup"), raw("other"), raw("dup")], "dup", new)
        assert result[0] is new
        assert result[2] is new
        assert result[1].block_id == "other"

    def test_length_is_preserved(self):
        blocks = [raw("a"), raw("b"), DividerBlock()]
        assert len(replace_block(blocks, "b", SectionBlock(text="n"))) == len(blocks)

    def test_empty_list(self):
        assert replace_block([], "x", SectionBlock(text="new")) == []
