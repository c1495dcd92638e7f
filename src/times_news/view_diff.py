"""Patch a rendered block list after a single row changed."""

from __future__ import annotations

from collections.abc import Sequence

from times_news.blocks import Block


def replace_block(
    blocks: Sequence[Block],
    target_block_id: str,
    replacement: Block,
) -> list[Block]:
    """Return a copy of ``blocks`` with the block ``target_block_id`` swapped out.

    Only ``block_id`` is inspected. Blocks without an id never match. If no
    block matches, the view has already drifted and the copy equals the
    input; if several match, all are replaced. ``blocks`` is not modified.
    """
    if not target_block_id:
        return list(blocks)
    return [
        replacement if block.block_id and block.block_id == target_block_id else block
        for block in blocks
    ]
