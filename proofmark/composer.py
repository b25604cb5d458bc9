"""Rich-text comment composer.

The composer keeps a flat string plus formatting spans and atomic mention
tokens. Every edit returns a new :class:`ComposerBuffer`, and ``to_html``
renders the allowed markup subset that :func:`sanitize_html` accepts back.
"""

from __future__ import annotations

import html
from dataclasses import dataclass, replace
from html.parser import HTMLParser
from itertools import groupby
from typing import Dict, List, Optional, Sequence, Tuple

from .mentions import active_mention_query as find_mention_query
from .mentions import insert_mention as splice_mention
from .types import Member, MentionToken

BOLD = "bold"
ITALIC = "italic"
LINK = "link"

BULLET = "ul"
NUMBERED = "ol"

ALLOWED_SCHEMES = ("http://", "https://", "mailto:")


def is_allowed_href(href: str) -> bool:
    return href.strip().lower().startswith(ALLOWED_SCHEMES)


@dataclass(frozen=True)
class Mark:
    """A formatting span over ``text[start:end]``."""

    start: int
    end: int
    kind: str
    href: str = ""


def _map_delete(pos: int, start: int, end: int) -> int:
    """Map an offset through the removal of ``[start, end)``."""
    if pos <= start:
        return pos
    if pos <= end:
        return start
    return pos - (end - start)


def _subtract(marks: Sequence[Mark], kind: str, start: int, end: int) -> List[Mark]:
    """Remove ``kind`` formatting from ``[start, end)``, splitting spans."""
    result: List[Mark] = []
    for mark in marks:
        if mark.kind != kind or mark.end <= start or mark.start >= end:
            result.append(mark)
            continue
        if mark.start < start:
            result.append(replace(mark, end=start))
        if mark.end > end:
            result.append(replace(mark, start=end))
    return result


def _merge(marks: Sequence[Mark]) -> Tuple[Mark, ...]:
    """Join overlapping or touching spans of the same kind and href."""
    ordered = sorted(marks, key=lambda m: (m.kind, m.href, m.start, m.end))
    merged: List[Mark] = []
    for mark in ordered:
        if mark.end <= mark.start:
            continue
        last = merged[-1] if merged else None
        if last and last.kind == mark.kind and last.href == mark.href and mark.start <= last.end:
            merged[-1] = replace(last, end=max(last.end, mark.end))
        else:
            merged.append(mark)
    return tuple(sorted(merged, key=lambda m: (m.start, m.end, m.kind)))


@dataclass(frozen=True)
class ComposerBuffer:
    """Immutable composer state.

    ``list_lines`` holds ``(line_index, list_kind)`` pairs for lines that
    render as list items; mentions are atomic and cannot be partially
    edited.
    """

    text: str = ""
    marks: Tuple[Mark, ...] = ()
    list_lines: Tuple[Tuple[int, str], ...] = ()
    mentions: Tuple[MentionToken, ...] = ()

    def _clip(self, pos: int) -> int:
        return max(0, min(pos, len(self.text)))

    def _mention_at(self, pos: int) -> Optional[MentionToken]:
        for token in self.mentions:
            if token.start < pos < token.end:
                return token
        return None

    def _line_of(self, pos: int) -> int:
        return self.text.count("\n", 0, pos)

    # --- Editing ------------------------------------------------------------
    def insert_text(self, pos: int, value: str) -> "ComposerBuffer":
        """Insert ``value`` at ``pos``. Typing inside a mention lands after it."""
        if not value:
            return self
        pos = self._clip(pos)
        inside = self._mention_at(pos)
        if inside is not None:
            pos = inside.end
        n = len(value)

        marks = []
        for mark in self.marks:
            if mark.start >= pos:
                marks.append(replace(mark, start=mark.start + n, end=mark.end + n))
            elif pos < mark.end or (pos == mark.end and mark.kind != LINK):
                marks.append(replace(mark, end=mark.end + n))
            else:
                marks.append(mark)

        tokens = tuple(
            replace(t, start=t.start + n, end=t.end + n) if t.start >= pos else t
            for t in self.mentions
        )

        line = self._line_of(pos)
        added = value.count("\n")
        lines = tuple((idx + added if idx > line else idx, kind) for idx, kind in self.list_lines)

        return ComposerBuffer(
            text=self.text[:pos] + value + self.text[pos:],
            marks=_merge(marks),
            list_lines=lines,
            mentions=tokens,
        )

    def delete_range(self, start: int, end: int) -> "ComposerBuffer":
        """Delete ``[start, end)``, widened to cover any mention it touches."""
        start, end = sorted((self._clip(start), self._clip(end)))
        if start == end:
            return self
        for token in self.mentions:
            if token.start < end and token.end > start:
                start = min(start, token.start)
                end = max(end, token.end)

        marks = [
            replace(m, start=_map_delete(m.start, start, end), end=_map_delete(m.end, start, end))
            for m in self.marks
        ]
        width = end - start
        tokens = tuple(
            t if t.end <= start else replace(t, start=t.start - width, end=t.end - width)
            for t in self.mentions
            if t.end <= start or t.start >= end
        )
        first = self._line_of(start)
        removed = self.text.count("\n", start, end)
        lines = []
        for idx, kind in self.list_lines:
            if idx <= first:
                lines.append((idx, kind))
            elif idx > first + removed:
                lines.append((idx - removed, kind))

        return ComposerBuffer(
            text=self.text[:start] + self.text[end:],
            marks=_merge(marks),
            list_lines=tuple(lines),
            mentions=tokens,
        )

    # --- Formatting ---------------------------------------------------------
    def _toggle(self, kind: str, start: int, end: int) -> "ComposerBuffer":
        start, end = sorted((self._clip(start), self._clip(end)))
        if start == end:
            return self
        if self.is_formatted(kind, start, end):
            marks = _subtract(self.marks, kind, start, end)
        else:
            marks = list(self.marks) + [Mark(start, end, kind)]
        return replace(self, marks=_merge(marks))

    def is_formatted(self, kind: str, start: int, end: int) -> bool:
        """Return True if every character of ``[start, end)`` carries ``kind``."""
        pos = start
        for mark in sorted((m for m in self.marks if m.kind == kind), key=lambda m: m.start):
            if mark.start > pos:
                break
            pos = max(pos, mark.end)
            if pos >= end:
                return True
        return pos >= end

    def apply_bold(self, start: int, end: int) -> "ComposerBuffer":
        """Toggle bold over the range."""
        return self._toggle(BOLD, start, end)

    def apply_italic(self, start: int, end: int) -> "ComposerBuffer":
        return self._toggle(ITALIC, start, end)

    def apply_link(self, start: int, end: int, href: str) -> "ComposerBuffer":
        """Link the range to ``href``; an empty ``href`` removes links.

        Raises:
            ValueError: If ``href`` is not an http, https or mailto URL.
        """
        start, end = sorted((self._clip(start), self._clip(end)))
        href = href.strip()
        if href and not is_allowed_href(href):
            raise ValueError(f"Unsupported link target: {href}")
        marks = _subtract(self.marks, LINK, start, end)
        if href and start < end:
            marks.append(Mark(start, end, LINK, href))
        return replace(self, marks=_merge(marks))

    def apply_list(self, start: int, end: int, kind: str = BULLET) -> "ComposerBuffer":
        """Toggle list formatting for every line touched by the range."""
        if kind not in (BULLET, NUMBERED):
            raise ValueError(f"Unknown list kind: {kind}")
        start, end = sorted((self._clip(start), self._clip(end)))
        touched = set(range(self._line_of(start), self._line_of(end) + 1))
        current = dict(self.list_lines)
        if all(current.get(idx) == kind for idx in touched):
            for idx in touched:
                current.pop(idx, None)
        else:
            for idx in touched:
                current[idx] = kind
        return replace(self, list_lines=tuple(sorted(current.items())))

    # --- Mentions -----------------------------------------------------------
    def active_mention_query(self, cursor: int) -> Optional[str]:
        """Return the live ``@query`` at the cursor, never inside a placed mention."""
        cursor = self._clip(cursor)
        for token in self.mentions:
            if token.start < cursor <= token.end:
                return None
        return find_mention_query(self.text, cursor)

    def insert_mention(self, cursor: int, member: Member) -> Tuple["ComposerBuffer", int]:
        """Replace the ``@query`` before the cursor with an atomic mention.

        Returns the new buffer and the cursor position after the trailing
        space.
        """
        cursor = self._clip(cursor)
        if self.active_mention_query(cursor) is None:
            raise ValueError("Cursor is not inside a mention token")
        _, new_cursor, token = splice_mention(self.text, cursor, member)
        spliced = self.delete_range(token.start, cursor).insert_text(token.start, f"@{member.display_name} ")
        tokens = tuple(sorted(spliced.mentions + (token,), key=lambda t: t.start))
        return replace(spliced, mentions=tokens), new_cursor

    def mentioned_ids(self) -> List[str]:
        """Return mentioned member ids in text order, without duplicates."""
        seen: List[str] = []
        for token in sorted(self.mentions, key=lambda t: t.start):
            if token.member_id not in seen:
                seen.append(token.member_id)
        return seen

    # --- Rendering ----------------------------------------------------------
    def _render_line(self, start: int, end: int) -> str:
        bounds = {start, end}
        for mark in self.marks:
            bounds.update(p for p in (mark.start, mark.end) if start < p < end)
        for token in self.mentions:
            bounds.update(p for p in (token.start, token.end) if start < p < end)
        points = sorted(bounds)

        pieces = []
        for a, b in zip(points, points[1:]):
            active = [m for m in self.marks if m.start <= a and m.end >= b]
            href = next((m.href for m in active if m.kind == LINK), "")
            bold = any(m.kind == BOLD for m in active)
            italic = any(m.kind == ITALIC for m in active)
            inner = html.escape(self.text[a:b], quote=False)
            token = next((t for t in self.mentions if t.start <= a and t.end >= b), None)
            if token is not None:
                inner = f'<span data-mention-id="{html.escape(token.member_id)}">{inner}</span>'
            pieces.append(((href, bold, italic), inner))

        out = []
        for (href, bold, italic), group in groupby(pieces, key=lambda p: p[0]):
            chunk = "".join(inner for _, inner in group)
            if italic:
                chunk = f"<em>{chunk}</em>"
            if bold:
                chunk = f"<strong>{chunk}</strong>"
            if href:
                chunk = f'<a href="{html.escape(href)}">{chunk}</a>'
            out.append(chunk)
        return "".join(out)

    def to_html(self) -> str:
        """Render the buffer as sanitized-subset HTML."""
        if not self.text:
            return ""
        rendered = []
        offset = 0
        for line in self.text.split("\n"):
            rendered.append(self._render_line(offset, offset + len(line)))
            offset += len(line) + 1

        kinds = dict(self.list_lines)
        blocks = []
        for kind, group in groupby(range(len(rendered)), key=lambda idx: kinds.get(idx)):
            indices = list(group)
            if kind is None:
                blocks.append("<p>" + "<br>".join(rendered[idx] for idx in indices) + "</p>")
            else:
                items = "".join(f"<li>{rendered[idx]}</li>" for idx in indices)
                blocks.append(f"<{kind}>{items}</{kind}>")
        return "".join(blocks)


# --- Sanitizer ----------------------------------------------------------------
class _Sanitizer(HTMLParser):
    """Allow-list HTML filter for stored comment content."""

    allowed_tags = {"strong", "b", "em", "i", "ul", "ol", "li", "br", "p", "a", "span"}
    skip_tags = {"script", "style", "head", "iframe", "object", "noscript", "template"}
    void_tags = {"area", "base", "br", "col", "embed", "hr", "img", "input", "link", "meta", "source", "track", "wbr"}

    def __init__(self):
        super().__init__(convert_charrefs=True)
        self.out: List[str] = []
        # (tag, emitted) for every open element, kept or dropped
        self._open: List[Tuple[str, bool]] = []
        self._skip_depth = 0

    def handle_starttag(self, tag, attrs):
        if tag in self.skip_tags:
            self._skip_depth += 1
            return
        if self._skip_depth:
            return
        if tag in self.void_tags:
            if tag == "br":
                self.out.append("<br>")
            return
        opening = self._allowed_open(tag, dict(attrs))
        if opening is not None:
            self.out.append(opening)
        self._open.append((tag, opening is not None))

    def handle_startendtag(self, tag, attrs):
        if tag == "br" and not self._skip_depth:
            self.out.append("<br>")

    def handle_endtag(self, tag):
        if tag in self.skip_tags:
            self._skip_depth = max(0, self._skip_depth - 1)
            return
        if self._skip_depth or tag in self.void_tags:
            return
        for idx in range(len(self._open) - 1, -1, -1):
            if self._open[idx][0] == tag:
                closing = self._open[idx:]
                del self._open[idx:]
                self.out.extend(f"</{name}>" for name, emitted in reversed(closing) if emitted)
                return

    def handle_data(self, data):
        if not self._skip_depth:
            self.out.append(html.escape(data, quote=False))

    def _allowed_open(self, tag: str, attrs: Dict[str, Optional[str]]) -> Optional[str]:
        if tag not in self.allowed_tags:
            return None
        if tag == "a":
            href = (attrs.get("href") or "").strip()
            if not is_allowed_href(href):
                return None
            return f'<a href="{html.escape(href)}">'
        if tag == "span":
            member_id = attrs.get("data-mention-id")
            if not member_id:
                return None
            return f'<span data-mention-id="{html.escape(member_id)}">'
        return f"<{tag}>"

    def result(self) -> str:
        self.close()
        self.out.extend(f"</{name}>" for name, emitted in reversed(self._open) if emitted)
        self._open.clear()
        return "".join(self.out)


class _TextExtractor(HTMLParser):
    block_tags = {"p", "li", "br", "ul", "ol"}

    def __init__(self):
        super().__init__(convert_charrefs=True)
        self.fed: List[str] = []
        self._skip_depth = 0

    def handle_starttag(self, tag, attrs):
        if tag in _Sanitizer.skip_tags:
            self._skip_depth += 1
        elif tag in self.block_tags:
            self.fed.append("\n")

    def handle_endtag(self, tag):
        if tag in _Sanitizer.skip_tags:
            self._skip_depth = max(0, self._skip_depth - 1)

    def handle_data(self, data):
        if not self._skip_depth:
            self.fed.append(data)


def sanitize_html(content: str) -> str:
    """Return ``content`` reduced to the allowed tags and attributes.

    Disallowed tags are dropped but their text is kept (escaped); script
    and style bodies are removed entirely.
    """
    parser = _Sanitizer()
    parser.feed(content)
    return parser.result().strip()


def plain_text(content: str) -> str:
    """Strip markup, returning readable text for search and previews."""
    parser = _TextExtractor()
    parser.feed(content)
    parser.close()
    lines = ("".join(parser.fed)).split("\n")
    return " ".join(" ".join(line.split()) for line in lines if line.strip())
