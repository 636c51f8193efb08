# utils/rich_text.py
"""
Restricted rich-text fragments.

Prose fields hold an HTML fragment that may only use bold, italic and
bulleted-list markup. This module parses such fragments (tolerating the
extra wrappers browsers insert while editing) into a small block model,
edits that model through plain-text selections and serializes it back to
the allowed markup:

    <b>..</b>   <i>..</i>   <ul><li>..</li></ul>   <br>

Selections are offsets into the fragment's plain text, where consecutive
blocks are separated by one virtual newline character.
"""

from dataclasses import dataclass, field
from html import escape
from typing import List, Optional, Tuple

from bs4 import BeautifulSoup, NavigableString, Tag
from bs4.element import Comment

BOLD_TAGS = {"b", "strong"}
ITALIC_TAGS = {"i", "em"}
LIST_TAGS = {"ul", "ol"}
BLOCK_TAGS = {"div", "p"}
SKIPPED_TAGS = {"script", "style", "head", "title"}


def extract_text(html: Optional[str]) -> str:
    """Plain text content of a fragment (tags dropped, entities decoded)."""
    if not html:
        return ""
    return BeautifulSoup(html, "html.parser").get_text()


def is_empty_html(html: Optional[str]) -> bool:
    """A fragment is empty when it has no text other than whitespace, whatever its markup."""
    return not extract_text(html).strip()


def normalize_fragment(html: Optional[str]) -> str:
    """Reduce any HTML to the allowed bold/italic/bulleted-list markup."""
    return Fragment.parse(html).to_html()


@dataclass
class Run:
    text: str
    bold: bool = False
    italic: bool = False

    def same_style(self, other: "Run") -> bool:
        return self.bold == other.bold and self.italic == other.italic


@dataclass
class Block:
    runs: List[Run] = field(default_factory=list)
    bullet: bool = False

    @property
    def text(self) -> str:
        return "".join(r.text for r in self.runs)


def _slice_runs(runs: List[Run], start: int, end: int) -> List[Run]:
    """Copy of the runs covering characters [start, end) of a block."""
    out = []
    pos = 0
    for run in runs:
        run_end = pos + len(run.text)
        lo, hi = max(start, pos), min(end, run_end)
        if lo < hi:
            out.append(Run(run.text[lo - pos:hi - pos], run.bold, run.italic))
        pos = run_end
    return out


class _FragmentBuilder:
    def __init__(self):
        self.blocks: List[Block] = []
        self._open: Optional[Block] = None

    def _new_block(self, bullet: bool) -> Block:
        self._open = Block(bullet=bullet)
        self.blocks.append(self._open)
        return self._open

    def text(self, s: str, bold: bool, italic: bool, bullet: bool):
        if self._open is None or self._open.bullet != bullet:
            if not s.strip():
                # formatting whitespace between blocks
                return
            self._new_block(bullet)
        self._open.runs.append(Run(s, bold, italic))

    def line_break(self, bullet: bool):
        if self._open is None:
            self._new_block(bullet)
        self._new_block(bullet)

    def close(self):
        self._open = None

    def walk(self, node, bold=False, italic=False, bullet=False):
        for child in node.children:
            if isinstance(child, Comment):
                continue
            if isinstance(child, NavigableString):
                self.text(str(child), bold, italic, bullet)
                continue
            if not isinstance(child, Tag) or child.name in SKIPPED_TAGS:
                continue

            name = child.name
            if name == "br":
                self.line_break(bullet)
            elif name in LIST_TAGS:
                self.close()
                self.walk(child, bold, italic, bullet)
                self.close()
            elif name == "li":
                self.close()
                self._new_block(True)
                self.walk(child, bold, italic, True)
                self.close()
            elif name in BLOCK_TAGS:
                self.close()
                self.walk(child, bold, italic, bullet)
                self.close()
            else:
                # inline: anything but b/i is unwrapped, keeping its text
                self.walk(
                    child,
                    bold or name in BOLD_TAGS,
                    italic or name in ITALIC_TAGS,
                    bullet,
                )


class Fragment:
    """Editable block model of a restricted HTML fragment."""

    def __init__(self, blocks: Optional[List[Block]] = None):
        self.blocks: List[Block] = blocks or []

    @classmethod
    def parse(cls, html: Optional[str]) -> "Fragment":
        if not html:
            return cls()
        builder = _FragmentBuilder()
        builder.walk(BeautifulSoup(html, "html.parser"))
        return cls(builder.blocks)

    # -------------------------
    # Serialization
    # -------------------------
    @staticmethod
    def _inline_html(runs: List[Run]) -> str:
        merged: List[Run] = []
        for run in runs:
            if not run.text:
                continue
            if merged and merged[-1].same_style(run):
                merged[-1] = Run(merged[-1].text + run.text, run.bold, run.italic)
            else:
                merged.append(Run(run.text, run.bold, run.italic))

        out = []
        for run in merged:
            s = escape(run.text, quote=False)
            if run.italic:
                s = f"<i>{s}</i>"
            if run.bold:
                s = f"<b>{s}</b>"
            out.append(s)
        return "".join(out)

    def to_html(self) -> str:
        out = []
        prev: Optional[Block] = None
        for block in self.blocks:
            inline = self._inline_html(block.runs)
            if block.bullet:
                if prev is None or not prev.bullet:
                    out.append("<ul>")
                out.append(f"<li>{inline}</li>")
            else:
                if prev is not None and prev.bullet:
                    out.append("</ul>")
                elif prev is not None:
                    out.append("<br>")
                out.append(inline)
            prev = block
        if prev is not None and prev.bullet:
            out.append("</ul>")
        return "".join(out)

    @property
    def plain_text(self) -> str:
        return "\n".join(b.text for b in self.blocks)

    def is_empty(self) -> bool:
        return not self.plain_text.strip()

    # -------------------------
    # Selection helpers
    # -------------------------
    def _ensure_block(self):
        if not self.blocks:
            self.blocks.append(Block())

    def clamp(self, pos: int) -> int:
        return max(0, min(pos, len(self.plain_text)))

    def _locate(self, pos: int) -> Tuple[int, int]:
        """Map a plain-text offset to (block index, offset within block)."""
        self._ensure_block()
        pos = self.clamp(pos)
        for i, block in enumerate(self.blocks):
            n = len(block.text)
            if pos <= n:
                return i, pos
            pos -= n + 1
        return len(self.blocks) - 1, len(self.blocks[-1].text)

    def _ordered(self, start: int, end: int) -> Tuple[int, int]:
        start, end = self.clamp(start), self.clamp(end)
        return (start, end) if start <= end else (end, start)

    def _segments(self, start: int, end: int):
        """Yield (block, local_start, local_end) for every block touched by [start, end)."""
        (bi, bo), (ei, eo) = self._locate(start), self._locate(end)
        for i in range(bi, ei + 1):
            block = self.blocks[i]
            lo = bo if i == bi else 0
            hi = eo if i == ei else len(block.text)
            yield block, lo, hi

    def style_at(self, pos: int) -> Tuple[bool, bool]:
        """(bold, italic) that text typed at `pos` inherits: the character before it, else after."""
        bi, bo = self._locate(pos)
        runs = self.blocks[bi].runs
        probe = _slice_runs(runs, bo - 1, bo) if bo > 0 else _slice_runs(runs, 0, 1)
        if probe:
            return probe[0].bold, probe[0].italic
        return False, False

    # -------------------------
    # Editing
    # -------------------------
    def has_style(self, start: int, end: int, attr: str) -> bool:
        """True when every character in [start, end) carries the style."""
        start, end = self._ordered(start, end)
        chars = 0
        for block, lo, hi in self._segments(start, end):
            for run in _slice_runs(block.runs, lo, hi):
                chars += len(run.text)
                if not getattr(run, attr):
                    return False
        return chars > 0

    def set_style(self, start: int, end: int, attr: str, value: bool):
        start, end = self._ordered(start, end)
        for block, lo, hi in self._segments(start, end):
            n = len(block.text)
            middle = _slice_runs(block.runs, lo, hi)
            for run in middle:
                setattr(run, attr, value)
            block.runs = _slice_runs(block.runs, 0, lo) + middle + _slice_runs(block.runs, hi, n)

    def toggle_style(self, start: int, end: int, attr: str):
        self.set_style(start, end, attr, not self.has_style(start, end, attr))

    def toggle_bullets(self, start: int, end: int):
        start, end = self._ordered(start, end)
        touched = [block for block, _, _ in self._segments(start, end)]
        bullet = not all(b.bullet for b in touched)
        for block in touched:
            block.bullet = bullet

    def delete(self, start: int, end: int):
        start, end = self._ordered(start, end)
        if start == end:
            return
        (bi, bo), (ei, eo) = self._locate(start), self._locate(end)
        first, last = self.blocks[bi], self.blocks[ei]
        first.runs = _slice_runs(first.runs, 0, bo) + _slice_runs(last.runs, eo, len(last.text))
        del self.blocks[bi + 1:ei + 1]

    def insert(self, pos: int, text: str, bold: bool = False, italic: bool = False) -> int:
        """Insert text at `pos`; a newline starts a new block. Returns the caret after the text."""
        bi, bo = self._locate(pos)
        pos = self.clamp(pos)
        block = self.blocks[bi]
        n = len(block.text)
        tail = _slice_runs(block.runs, bo, n)
        lines = text.split("\n")

        block.runs = _slice_runs(block.runs, 0, bo) + [Run(lines[0], bold, italic)]
        new_blocks = [Block([Run(line, bold, italic)], block.bullet) for line in lines[1:]]
        (new_blocks[-1] if new_blocks else block).runs.extend(tail)
        self.blocks[bi + 1:bi + 1] = new_blocks
        return pos + len(text)
