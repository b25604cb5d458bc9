"""Mention tokenizer for the comment composer.

A mention starts with ``@`` at the beginning of the text or right after
whitespace. While the cursor sits inside such a token the composer shows
member suggestions; picking one replaces the token with ``@Display Name``.
"""

from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

from .types import Member, MentionToken


def _token_start(text: str, cursor: int) -> int:
    start = cursor
    while start > 0 and not text[start - 1].isspace():
        start -= 1
    return start


def active_mention_query(text: str, cursor: int) -> Optional[str]:
    """Return the partial name typed after ``@`` at the cursor, if any.

    >>> active_mention_query("hey @an", 7)
    'an'
    >>> active_mention_query("mail a@b", 8) is None
    True
    """
    cursor = max(0, min(cursor, len(text)))
    start = _token_start(text, cursor)
    if start < len(text) and text[start] == "@" and start < cursor:
        return text[start + 1:cursor]
    return None


def filter_members(members: Sequence[Member], query: str) -> List[Member]:
    """Return members whose display name contains ``query``, prefix matches first."""
    needle = query.casefold()
    prefix: List[Member] = []
    inner: List[Member] = []
    for member in members:
        name = member.display_name.casefold()
        if name.startswith(needle):
            prefix.append(member)
        elif needle in name:
            inner.append(member)
    return prefix + inner


def insert_mention(text: str, cursor: int, member: Member) -> Tuple[str, int, MentionToken]:
    """Replace the ``@query`` before the cursor with a mention of ``member``.

    Returns the new text, the cursor placed after the trailing space, and
    the span of the inserted token (without the space).

    Raises:
        ValueError: If the cursor is not inside a mention token.
    """
    cursor = max(0, min(cursor, len(text)))
    if active_mention_query(text, cursor) is None:
        raise ValueError("Cursor is not inside a mention token")
    start = _token_start(text, cursor)
    token = f"@{member.display_name}"
    new_text = text[:start] + token + " " + text[cursor:]
    mention = MentionToken(start, start + len(token), member.id, member.display_name)
    return new_text, start + len(token) + 1, mention
