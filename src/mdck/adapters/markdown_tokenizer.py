"""Markdown tokenizer producing offset-tagged events.

Block structure is scanned line by line, link reference definitions are
collected before any inline scanning (so references may precede their
definitions), and paragraph and heading text is then scanned for links with a
bracket stack. Only the CommonMark constructs that decide whether a ``[...]``
is a link are modelled. Block quotes and list items are tracked as containers
but produce no events; emphasis is left as text.
"""

import bisect
import html
import re
import string
from dataclasses import dataclass, field
from typing import Iterator

from ..core.model import Event
from ..core.ports import TokenizerStrategy

LINE_RE = re.compile(r"[^\n]*\n?")
MARKER_RE = re.compile(r"[-+*]|(\d{1,9})[.)]")
THEMATIC_RE = re.compile(r" {0,3}(?:(?:\*[ \t]*){3,}|(?:-[ \t]*){3,}|(?:_[ \t]*){3,})$")
ATX_RE = re.compile(r"(#{1,6})(?:[ \t]+|$)")
ATX_CLOSE_RE = re.compile(r"(?:^|[ \t]+)#+[ \t]*$")
SETEXT_RE = re.compile(r"(?:=+|-+)[ \t]*$")
FENCE_RE = re.compile(r"(`{3,}|~{3,})(.*)$")

BLOCK_TAGS = (
    "address|article|aside|base|basefont|blockquote|body|caption|center|col|"
    "colgroup|dd|details|dialog|dir|div|dl|dt|fieldset|figcaption|figure|"
    "footer|form|frame|frameset|h[1-6]|head|header|hr|html|iframe|legend|li|"
    "link|main|menu|menuitem|nav|noframes|ol|optgroup|option|p|param|search|"
    "section|summary|table|tbody|td|tfoot|th|thead|title|tr|track|ul"
)
OPEN_TAG = (
    r"<[A-Za-z][A-Za-z0-9-]*"
    r"(?:\s+[A-Za-z_:][A-Za-z0-9_.:-]*"
    r"(?:\s*=\s*(?:[^\s\"'=<>`]+|'[^']*'|\"[^\"]*\"))?)*"
    r"\s*/?>"
)
CLOSE_TAG = r"</[A-Za-z][A-Za-z0-9-]*\s*>"

# (start pattern, end pattern); an end of None means the block runs to a blank line
HTML_BLOCKS = [
    (
        re.compile(r"<(?:script|pre|style|textarea)(?:[\s>]|$)", re.I),
        re.compile(r"</(?:script|pre|style|textarea)>", re.I),
    ),
    (re.compile(r"<!--"), re.compile(r"-->")),
    (re.compile(r"<\?"), re.compile(r"\?>")),
    (re.compile(r"<![A-Za-z]"), re.compile(r">")),
    (re.compile(r"<!\[CDATA\["), re.compile(r"\]\]>")),
    (re.compile(r"</?(?:" + BLOCK_TAGS + r")(?:[\s>]|/>|$)", re.I), None),
]
HTML_TAG_LINE_RE = re.compile(r"(?:" + OPEN_TAG + "|" + CLOSE_TAG + r")[ \t]*$")

DEF_RE = re.compile(
    r"\[((?:[^\\\[\]]|\\.){0,999})\]:"
    r"[ \t]*\n?[ \t]*"
    r"(<(?:[^<>\n\\]|\\.)*>|\S+)"
    r"(?:(?:[ \t]+|[ \t]*\n[ \t]*)"
    r"(\"(?:[^\"\\]|\\.)*\"|'(?:[^'\\]|\\.)*'|\((?:[^()\\]|\\.)*\)))?"
    r"[ \t]*(?:\n|$)",
    re.S,
)
LABEL_RE = re.compile(r"\[((?:[^\\\[\]]|\\.){0,999})\]", re.S)
TITLE_RE = re.compile(r'"(?:[^"\\]|\\.)*"|\'(?:[^\'\\]|\\.)*\'|\((?:[^()\\]|\\.)*\)', re.S)
ANGLE_DEST_RE = re.compile(r"<((?:[^<>\n\\]|\\.)*)>")
SPACE_RE = re.compile(r"[ \t]*(?:\n[ \t]*)?")

SPECIAL_RE = re.compile(r"[\\`<!\[\]]")
BACKTICKS_RE = re.compile(r"`+")
AUTOLINK_RE = re.compile(r"<([A-Za-z][A-Za-z0-9.+-]{1,31}:[^<>\x00-\x20]*)>")
EMAIL_RE = re.compile(
    r"<([A-Za-z0-9.!#$%&'*+/=?^_`{|}~-]+@[A-Za-z0-9]"
    r"(?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?"
    r"(?:\.[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?)*)>"
)
INLINE_HTML_RE = re.compile(
    r"(?:" + OPEN_TAG + "|" + CLOSE_TAG
    + r"|<!--.*?-->|<\?.*?\?>|<![A-Za-z][^>]*>|<!\[CDATA\[.*?\]\]>)",
    re.S,
)
UNESCAPE_RE = re.compile(
    r"\\([!-/:-@\[-`{-~])|&(?:#[0-9]{1,7}|#[xX][0-9a-fA-F]{1,6}|[A-Za-z][A-Za-z0-9]{1,31});"
)
ASCII_PUNCT = frozenset(string.punctuation)


@dataclass
class _Block:
    kind: str  # "paragraph" | "heading" | "codeblock" | "html" | "rule"
    start: int
    end: int
    segments: list[tuple[int, int]] = field(default_factory=list)
    info: str = ""


@dataclass
class _Opener:
    pos: int
    image: bool
    active: bool = True


@dataclass
class _Container:
    kind: str  # "quote" | "item"
    width: int = 0  # columns from the parent content to the item content
    empty: bool = False  # item opened with nothing after its marker


class _SourceMap:
    """Joined text of a block's line segments, mapped back to source offsets."""

    def __init__(self, text: str, segments: list[tuple[int, int]]):
        self.starts: list[int] = []
        self.origins: list[int] = []
        parts = []
        pos = 0
        for start, end in segments:
            self.starts.append(pos)
            self.origins.append(start)
            parts.append(text[start:end])
            pos += end - start + 1
        self.text = "\n".join(parts)

    def to_source(self, pos: int) -> int:
        k = bisect.bisect_right(self.starts, pos) - 1
        return self.origins[k] + pos - self.starts[k]


class TokenStream:
    """Iterator of events that can report where the next event begins."""

    def __init__(self, items: Iterator[tuple[int, Event]], length: int):
        self._items = items
        self._length = length
        self._pending: tuple[int, Event] | None = None
        self._done = False

    def _fill(self) -> None:
        if self._pending is None and not self._done:
            self._pending = next(self._items, None)
            self._done = self._pending is None

    @property
    def offset(self) -> int:
        """Offset of the next event, or the text length once exhausted."""
        self._fill()
        return self._length if self._pending is None else self._pending[0]

    def __iter__(self) -> "TokenStream":
        return self

    def __next__(self) -> Event:
        self._fill()
        item = self._pending
        self._pending = None
        if item is None:
            raise StopIteration
        return item[1]


def with_offsets(stream: TokenStream) -> Iterator[tuple[int, Event]]:
    """Pair every event of ``stream`` with the offset at which it began."""
    while True:
        offset = stream.offset  # advancing moves past the token, so read first
        try:
            event = next(stream)
        except StopIteration:
            return
        yield offset, event


class MarkdownTokenizer(TokenizerStrategy):
    def parse(self, text: str) -> TokenStream:
        return TokenStream(self._items(text), len(text))

    def events(self, text: str) -> Iterator[tuple[int, Event]]:
        return with_offsets(self.parse(text))

    def _items(self, text: str) -> Iterator[tuple[int, Event]]:
        defs: dict[str, tuple[str, str | None]] = {}
        prepared = []
        for block in _scan_blocks(text):
            if block.kind in ("paragraph", "heading"):
                smap = _SourceMap(text, block.segments)
                begin = 0
                if block.kind == "paragraph":
                    begin = _take_definitions(smap.text, defs)
                    if not smap.text[begin:].strip():
                        continue
                prepared.append((block, smap, begin))
            else:
                prepared.append((block, None, 0))

        for block, smap, begin in prepared:
            if smap is not None:
                yield smap.to_source(begin), Event("start", block.kind)
                for pos, event in _inline_events(smap.text, begin, defs):
                    yield smap.to_source(pos), event
                yield block.end, Event("end", block.kind)
            elif block.kind == "codeblock":
                body_start, body_end = block.segments[0]
                yield block.start, Event("start", "codeblock", text=block.info)
                if body_end > body_start:
                    yield body_start, Event("text", text=text[body_start:body_end])
                yield block.end, Event("end", "codeblock")
            elif block.kind == "html":
                yield block.start, Event("html", text=text[block.start:block.end])
            else:
                yield block.start, Event("rule")


def tokenize(text: str) -> Iterator[tuple[int, Event]]:
    """Offset-tagged events for ``text`` using the default tokenizer."""
    return MarkdownTokenizer().events(text)


def _scan_blocks(text: str) -> list[_Block]:
    return _BlockScanner(text).scan()


class _BlockScanner:
    """Leaf blocks of a text, found line by line inside block quote and list item containers.

    Each line first continues as many open containers as it can. A line that
    leaves some of them either lazily continues the open paragraph or closes
    them together with any open code, HTML or paragraph block.
    """

    def __init__(self, text: str):
        self.text = text
        self.blocks: list[_Block] = []
        self.stack: list[_Container] = []
        self.para: _Block | None = None
        self.fence: _Block | None = None
        self.fence_marker = ""
        self.html: _Block | None = None
        self.html_end: re.Pattern | None = None
        self.icode: _Block | None = None

    def scan(self) -> list[_Block]:
        offset = 0
        for m in LINE_RE.finditer(self.text):
            raw = m.group()
            if not raw:
                break
            start = offset
            offset += len(raw)
            line = raw.rstrip("\r\n")
            self._line(line, start, start + len(line), offset)
        return self.blocks

    def _close_leaves(self) -> None:
        self.para = self.fence = self.html = self.icode = None

    def _line(self, line: str, start: int, end: int, next_start: int) -> None:
        i = col = matched = 0
        for container in self.stack:
            pos = _continue(container, line, i, col)
            if pos is None:
                break
            i, col = pos
            matched += 1

        if matched < len(self.stack):
            if self.para is not None and _is_lazy(line, i, col):
                self.para.segments.append((start + _indent(line, i, col)[1], end))
                self.para.end = end
                return
            self._close_leaves()
            del self.stack[matched:]
        elif self.fence is not None:
            n, j = _indent(line, i, col)
            closing = line[j:].rstrip(" \t")
            marker = self.fence_marker
            self.fence.end = end
            if n < 4 and len(closing) >= len(marker) and closing == marker[0] * len(closing):
                self.fence = None
            else:
                self.fence.segments[0] = (self.fence.segments[0][0], end)
            return
        elif self.html is not None:
            if self.html_end is None:
                if line[i:].strip():
                    self.html.end = end
                    return
                self.html = None
            else:
                self.html.end = end
                if self.html_end.search(line, i):
                    self.html = None
                return

        opened = []
        interrupting = self.para is not None
        while True:
            quote = _match_quote(line, i, col)
            if quote is not None:
                opened.append(_Container("quote"))
                i, col = quote
            else:
                item = _match_item(line, i, col, interrupting)
                if item is None:
                    break
                container, i, col = item
                opened.append(container)
            interrupting = False
        if opened:
            self._close_leaves()
            self.stack.extend(opened)

        indent, j = _indent(line, i, col)
        if j >= len(line):
            self.para = None
            return

        content = start + j
        stripped = line[j:]
        if indent >= 4 and self.para is None:
            if self.icode is None:
                self.icode = _Block("codeblock", start, end, [(start, end)])
                self.blocks.append(self.icode)
            self.icode.segments[0] = (self.icode.start, end)
            self.icode.end = end
            return
        self.icode = None

        if indent < 4:
            fm = _fence_start(stripped)
            if fm:
                self.para = None
                self.fence_marker = fm.group(1)
                self.fence = _Block(
                    "codeblock", start, end, [(next_start, next_start)], fm.group(2).strip()
                )
                self.blocks.append(self.fence)
                return

            hm = ATX_RE.match(stripped)
            if hm:
                self.para = None
                body = ATX_CLOSE_RE.sub("", stripped[hm.end():]).rstrip(" \t")
                body_start = content + hm.end()
                self.blocks.append(
                    _Block("heading", start, end, [(body_start, body_start + len(body))])
                )
                return

            if self.para is not None and SETEXT_RE.match(stripped):
                self.para = None
                return

            if THEMATIC_RE.match(stripped):
                self.para = None
                self.blocks.append(_Block("rule", start, end))
                return

            html_start = _html_block_start(stripped, self.para is not None)
            if html_start is not None:
                self.para = None
                self.html = _Block("html", start, end)
                self.blocks.append(self.html)
                self.html_end = html_start[0]
                if self.html_end is not None and self.html_end.search(line, j):
                    self.html = None
                return

        if self.para is None:
            self.para = _Block("paragraph", content, end)
            self.blocks.append(self.para)
        self.para.segments.append((content, end))
        self.para.end = end


def _indent(line: str, i: int, col: int) -> tuple[int, int]:
    """Columns of whitespace at ``i`` (tabs to the next multiple of 4) and where it ends."""
    start = col
    while i < len(line) and line[i] in " \t":
        col += 4 - col % 4 if line[i] == "\t" else 1
        i += 1
    return col - start, i


def _advance(line: str, i: int, col: int, n: int) -> tuple[int, int]:
    """Consume up to ``n`` columns of whitespace; a tab may be consumed in part."""
    while n > 0 and i < len(line) and line[i] in " \t":
        width = 4 - col % 4 if line[i] == "\t" else 1
        if width > n:
            return i, col + n
        i += 1
        col += width
        n -= width
    return i, col


def _match_quote(line: str, i: int, col: int) -> tuple[int, int] | None:
    indent, j = _indent(line, i, col)
    if indent > 3 or not line.startswith(">", j):
        return None
    return _advance(line, j + 1, col + indent + 1, 1)


def _match_item(
    line: str, i: int, col: int, interrupting: bool
) -> tuple[_Container, int, int] | None:
    """A list marker at ``i``, with the item's content width and position."""
    indent, j = _indent(line, i, col)
    if indent > 3 or THEMATIC_RE.match(line, j):
        return None
    m = MARKER_RE.match(line, j)
    if m is None:
        return None
    k = m.end()
    if k < len(line) and line[k] not in " \t":
        return None

    marker_end = col + indent + k - j
    spaces, after = _indent(line, k, marker_end)
    blank = after >= len(line)
    # only a non-empty bullet or "1." item may interrupt a paragraph
    if interrupting and (blank or (m.group(1) is not None and int(m.group(1)) != 1)):
        return None

    if blank or spaces >= 5:
        # content starts one column after the marker
        i, content_col = _advance(line, k, marker_end, 1)
        width = marker_end + 1 - col
    else:
        i, content_col = after, marker_end + spaces
        width = content_col - col
    return _Container("item", width, empty=blank), i, content_col


def _continue(container: _Container, line: str, i: int, col: int) -> tuple[int, int] | None:
    if container.kind == "quote":
        return _match_quote(line, i, col)
    indent, j = _indent(line, i, col)
    if j >= len(line):
        # an item may begin with at most one blank line
        return None if container.empty else (j, col + indent)
    if indent < container.width:
        return None
    container.empty = False
    return _advance(line, i, col, container.width)


def _is_lazy(line: str, i: int, col: int) -> bool:
    """Whether a line that left some containers still continues their paragraph."""
    indent, j = _indent(line, i, col)
    if j >= len(line):
        return False
    if indent >= 4:
        return True
    if _match_quote(line, i, col) or _match_item(line, i, col, False):
        return False
    stripped = line[j:]
    if _fence_start(stripped) or ATX_RE.match(stripped) or THEMATIC_RE.match(stripped):
        return False
    return _html_block_start(stripped, True) is None


def _fence_start(line: str) -> re.Match | None:
    fm = FENCE_RE.match(line)
    if fm and fm.group(1)[0] == "`" and "`" in fm.group(2):
        return None
    return fm


def _html_block_start(line: str, in_paragraph: bool) -> tuple[re.Pattern | None] | None:
    for start_re, end_re in HTML_BLOCKS:
        if start_re.match(line):
            return (end_re,)
    # a lone tag only starts a block outside paragraphs
    if not in_paragraph and HTML_TAG_LINE_RE.match(line):
        return (None,)
    return None


def _normalize_label(label: str) -> str:
    return " ".join(label.split()).casefold()


def _unescape(value: str) -> str:
    if "\\" not in value and "&" not in value:
        return value
    return UNESCAPE_RE.sub(
        lambda m: m.group(1) if m.group(1) is not None else html.unescape(m.group()),
        value,
    )


def _take_definitions(src: str, defs: dict[str, tuple[str, str | None]]) -> int:
    """Record the reference definitions opening ``src``; return where text resumes."""
    pos = 0
    while pos < len(src):
        m = DEF_RE.match(src, pos)
        if not m or not m.group(1).strip():
            break
        dest = m.group(2)
        if dest.startswith("<") and dest.endswith(">"):
            dest = dest[1:-1]
        title = _unescape(m.group(3)[1:-1]) if m.group(3) else None
        defs.setdefault(_normalize_label(m.group(1)), (_unescape(dest), title))
        pos = m.end()
    return pos


def _inline_events(src: str, begin: int, defs) -> Iterator[tuple[int, Event]]:
    marks = sorted(_scan_inline(src, begin, defs), key=lambda mark: mark[0])
    pos = begin
    for start, end, event in marks:
        if start > pos:
            yield from _text_events(src, pos, start)
        yield start, event
        pos = max(pos, end)
    if pos < len(src):
        yield from _text_events(src, pos, len(src))


def _text_events(src: str, start: int, end: int) -> Iterator[tuple[int, Event]]:
    while start < end:
        nl = src.find("\n", start, end)
        if nl < 0:
            yield start, Event("text", text=src[start:end])
            return
        if nl > start:
            yield start, Event("text", text=src[start:nl])
        yield nl, Event("softbreak")
        start = nl + 1


def _scan_inline(src: str, begin: int, defs) -> list[tuple[int, int, Event]]:
    """Find code spans, raw HTML, autolinks, links and images as (start, end, event) marks.

    A link contributes two marks: its opening bracket (the start event) and
    the ``](...)`` tail (the end event); the link text between them is left to
    the caller.
    """
    marks: list[tuple[int, int, Event]] = []
    openers: list[_Opener] = []
    n = len(src)
    i = begin
    while i < n:
        m = SPECIAL_RE.search(src, i)
        if m is None:
            break
        i = m.start()
        c = src[i]

        if c == "\\":
            i += 2 if i + 1 < n and src[i + 1] in ASCII_PUNCT else 1
        elif c == "`":
            run = BACKTICKS_RE.match(src, i).end() - i
            close = _find_backticks(src, i + run, run)
            if close < 0:
                i += run
            else:
                marks.append((i, close + run, Event("code", text=_code_text(src[i + run:close]))))
                i = close + run
        elif c == "<":
            i = _angle(src, i, marks)
        elif c == "!":
            if src.startswith("[", i + 1):
                openers.append(_Opener(i, image=True))
                i += 2
            else:
                i += 1
        elif c == "[":
            openers.append(_Opener(i, image=False))
            i += 1
        else:
            i = _close_bracket(src, i, openers, marks, defs)
    return marks


def _find_backticks(src: str, pos: int, run: int) -> int:
    for m in BACKTICKS_RE.finditer(src, pos):
        if m.end() - m.start() == run:
            return m.start()
    return -1


def _code_text(code: str) -> str:
    code = code.replace("\n", " ")
    if len(code) > 2 and code[0] == " " and code[-1] == " " and code.strip(" "):
        code = code[1:-1]
    return code


def _angle(src: str, i: int, marks: list) -> int:
    m = AUTOLINK_RE.match(src, i)
    dest = m.group(1) if m else None
    if m is None:
        m = EMAIL_RE.match(src, i)
        dest = "mailto:" + m.group(1) if m else None
    if m is not None:
        marks.append((i, i + 1, Event("start", "link", dest=dest, title="")))
        marks.append((m.end() - 1, m.end(), Event("end", "link")))
        return m.end()

    m = INLINE_HTML_RE.match(src, i)
    if m is not None:
        marks.append((i, m.end(), Event("html", text=m.group())))
        return m.end()
    return i + 1


def _close_bracket(src: str, i: int, openers: list[_Opener], marks: list, defs) -> int:
    if not openers:
        return i + 1
    op = openers.pop()
    if not op.active:
        return i + 1

    text_start = op.pos + (2 if op.image else 1)
    tail = _link_tail(src, i + 1, src[text_start:i], defs)
    if tail is None:
        return i + 1

    dest, title, end = tail
    tag = "image" if op.image else "link"
    marks.append((op.pos, text_start, Event("start", tag, dest=dest, title=title)))
    marks.append((i, end, Event("end", tag)))
    if not op.image:
        # links may not contain links
        for other in openers:
            if not other.image:
                other.active = False
    return end


def _link_tail(src: str, j: int, label: str, defs) -> tuple[str, str | None, int] | None:
    if src.startswith("(", j):
        inline = _inline_tail(src, j)
        if inline is not None:
            return inline

    if src.startswith("[", j):
        m = LABEL_RE.match(src, j)
        if m is not None:
            ref = m.group(1)
            key = _normalize_label(ref if ref.strip() else label)
            if key in defs:
                dest, title = defs[key]
                return dest, title, m.end()
            return None

    key = _normalize_label(label)
    if key and key in defs:
        dest, title = defs[key]
        return dest, title, j
    return None


def _inline_tail(src: str, j: int) -> tuple[str, str | None, int] | None:
    n = len(src)
    k = SPACE_RE.match(src, j + 1).end()
    if k < n and src[k] == ")":
        return "", None, k + 1

    if src.startswith("<", k):
        m = ANGLE_DEST_RE.match(src, k)
        if m is None:
            return None
        dest = m.group(1)
        k = m.end()
    else:
        first = k
        depth = 0
        while k < n:
            c = src[k]
            if c == "\\" and k + 1 < n and src[k + 1] in ASCII_PUNCT:
                k += 2
                continue
            if c == "(":
                depth += 1
            elif c == ")":
                if depth == 0:
                    break
                depth -= 1
            elif c <= " " or c == "\x7f":
                break
            k += 1
        if depth or k == first:
            return None
        dest = src[first:k]

    after = SPACE_RE.match(src, k).end()
    title = None
    if after > k and after < n and src[after] in "\"'(":
        m = TITLE_RE.match(src, after)
        if m is None:
            return None
        title = _unescape(m.group()[1:-1])
        k = SPACE_RE.match(src, m.end()).end()
    else:
        k = after

    if k >= n or src[k] != ")":
        return None
    return _unescape(dest), title, k + 1
