"""Block Parser

Groups a post body into structural blocks: paragraphs, fenced org-mode blocks
(quote, src, example, verse), checkbox lists, and polls.

Block rules:
    - A blank line ends a paragraph.
    - ``#+begin_<type> [attributes]`` opens a fenced block closed by the
      matching ``#+end_<type>`` (either case). An unterminated fence is not a
      block: its lines are read as ordinary paragraph text.
    - A run of checkbox lines (``- [ ]``, ``- [x]``) forms a LIST block. When
      the owning post carries a poll deadline, the first such run is a POLL
      block instead and its labels are the poll options.

Quote, code, example, verse and poll blocks are activatable (collapsible in
presentation); paragraphs and lists are not.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional, Sequence, Set, Tuple, Union

from orgsocial.tokenizer import Token, TokenKind, tokenize

CHECKBOX_PATTERN = re.compile(r"^\s*-\s\[[ xX]\](?:\s+(.*))?$")
BEGIN_PATTERN = re.compile(r"^#\+begin_(\w+)(?:\s+(.*))?$", re.IGNORECASE)


class BlockKind(Enum):
    """Closed set of block kinds."""
    PARAGRAPH = "paragraph"
    QUOTE = "quote"
    CODE = "code"
    EXAMPLE = "example"
    VERSE = "verse"
    LIST = "list"
    POLL = "poll"


# Fence name -> block kind
FENCED_KINDS = {
    "quote": BlockKind.QUOTE,
    "src": BlockKind.CODE,
    "example": BlockKind.EXAMPLE,
    "verse": BlockKind.VERSE,
}

ACTIVATABLE_KINDS = frozenset({
    BlockKind.QUOTE,
    BlockKind.CODE,
    BlockKind.EXAMPLE,
    BlockKind.VERSE,
    BlockKind.POLL,
})

SUMMARY_LABELS = {
    BlockKind.QUOTE: "Quote block",
    BlockKind.CODE: "Code block",
    BlockKind.EXAMPLE: "Example block",
    BlockKind.VERSE: "Verse block",
    BlockKind.POLL: "Poll",
    BlockKind.LIST: "List",
    BlockKind.PARAGRAPH: "Paragraph",
}


@dataclass
class Block:
    """A structural block of a post body.

    Attributes:
        kind: Block kind
        lines: Body lines of the block (fence lines excluded)
        start_line: 0-based index of the first source line (fence line included)
        end_line: 0-based index of the last source line (fence line included)
        attributes: Text after ``#+begin_<type>`` (e.g. the src language)
        options: Poll option labels in document order (POLL blocks only)
        tokens: Inline tokens of the block body. Fenced code/example blocks
            carry a single plain-text token: their content is literal.
    """
    kind: BlockKind
    lines: List[str]
    start_line: int
    end_line: int
    attributes: Optional[str] = None
    options: List[str] = field(default_factory=list)
    tokens: List[Token] = field(default_factory=list)

    @property
    def is_activatable(self) -> bool:
        return self.kind in ACTIVATABLE_KINDS

    @property
    def content(self) -> str:
        return "\n".join(self.lines)

    def summary(self) -> str:
        """One-line label used when the block is collapsed."""
        label = SUMMARY_LABELS[self.kind]
        if self.kind is BlockKind.POLL:
            return f"{label} ({len(self.options)} options)"
        if self.attributes:
            return f"{label} ({self.attributes})"
        return label


def checkbox_label(line: str) -> Optional[str]:
    """Return the label of a checkbox line, or None if the line is not one.

    Example:
        >>> checkbox_label("- [ ] Red")
        'Red'
        >>> checkbox_label("Red") is None
        True
    """
    match = CHECKBOX_PATTERN.match(line)
    if not match:
        return None
    return (match.group(1) or "").strip()


def _find_fence_end(lines: Sequence[str], start: int, fence: str) -> Optional[int]:
    end_marker = f"#+end_{fence}".lower()
    for idx in range(start + 1, len(lines)):
        if lines[idx].strip().lower() == end_marker:
            return idx
    return None


def _inline_tokens(kind: BlockKind, body: str) -> List[Token]:
    if kind in (BlockKind.CODE, BlockKind.EXAMPLE):
        return tokenize_literal(body)
    return tokenize(body)


def tokenize_literal(body: str) -> List[Token]:
    """Wrap literal block content as one plain-text token."""
    if not body:
        return []
    return [Token(kind=TokenKind.PLAIN_TEXT, text=body, raw=body)]


def _content_from(source: Union[str, Iterable[Token], None]) -> str:
    if source is None:
        return ""
    if isinstance(source, str):
        return source
    # A token sequence reproduces its source text through the raw spans
    return "".join(token.raw for token in source)


def parse_blocks(
    source: Union[str, Iterable[Token], None],
    poll_end: Optional[str] = None,
) -> List[Block]:
    """Split post content into blocks.

    Args:
        source: Post body, either as the raw string or as the token sequence
            produced by ``tokenize`` (the raw spans are joined back together)
        poll_end: The owning post's poll deadline, if any. Only when this is
            present can a checkbox run become a POLL block.

    Returns:
        list[Block]: Blocks in document order. Never raises; malformed fences
            degrade to paragraph text.

    Example:
        >>> blocks = parse_blocks("Vote!\\n- [ ] Red\\n- [ ] Blue", poll_end="2030-01-01T00:00:00+00:00")
        >>> [b.kind.value for b in blocks]
        ['paragraph', 'poll']
        >>> blocks[1].options
        ['Red', 'Blue']
    """
    lines = _content_from(source).split("\n")
    blocks: List[Block] = []
    paragraph: List[Tuple[int, str]] = []
    poll_found = False

    def flush_paragraph():
        if paragraph:
            body = [text for _, text in paragraph]
            blocks.append(Block(
                kind=BlockKind.PARAGRAPH,
                lines=body,
                start_line=paragraph[0][0],
                end_line=paragraph[-1][0],
                tokens=tokenize("\n".join(body)),
            ))
            paragraph.clear()

    i = 0
    while i < len(lines):
        line = lines[i]
        stripped = line.strip()

        # Fenced block
        begin = BEGIN_PATTERN.match(stripped)
        if begin:
            fence = begin.group(1).lower()
            end = _find_fence_end(lines, i, fence)
            if end is not None:
                flush_paragraph()
                kind = FENCED_KINDS.get(fence, BlockKind.EXAMPLE)
                body = lines[i + 1:end]
                attributes = (begin.group(2) or "").strip() or None
                if kind is BlockKind.EXAMPLE and fence != "example":
                    # Unknown fence types keep their name as the attribute
                    attributes = fence if attributes is None else f"{fence} {attributes}"
                blocks.append(Block(
                    kind=kind,
                    lines=body,
                    start_line=i,
                    end_line=end,
                    attributes=attributes,
                    tokens=_inline_tokens(kind, "\n".join(body)),
                ))
                i = end + 1
                continue

        # Checkbox run
        if checkbox_label(line) is not None:
            flush_paragraph()
            run_start = i
            body: List[str] = []
            labels: List[str] = []
            last = i
            while i < len(lines):
                label = checkbox_label(lines[i])
                if label is not None:
                    body.append(lines[i])
                    if label:
                        labels.append(label)
                    last = i
                    i += 1
                elif not lines[i].strip() and i + 1 < len(lines) and checkbox_label(lines[i + 1]) is not None:
                    # A blank line between two options does not end the run
                    i += 1
                else:
                    break

            as_poll = bool(poll_end) and not poll_found and bool(labels)
            if as_poll:
                poll_found = True
            blocks.append(Block(
                kind=BlockKind.POLL if as_poll else BlockKind.LIST,
                lines=body,
                start_line=run_start,
                end_line=last,
                options=labels if as_poll else [],
                tokens=tokenize("\n".join(body)),
            ))
            continue

        if not stripped:
            flush_paragraph()
        else:
            paragraph.append((i, line))
        i += 1

    flush_paragraph()
    return blocks


def find_poll_block(blocks: Iterable[Block]) -> Optional[Block]:
    """Return the first POLL block, if any."""
    for block in blocks:
        if block.kind is BlockKind.POLL:
            return block
    return None


def render_collapsed(content: str, blocks: Iterable[Block], collapsed_starts: Set[int]) -> str:
    """Render content with some activatable blocks collapsed.

    Args:
        content: Post body the blocks were parsed from
        blocks: Blocks of that body
        collapsed_starts: start_line values of the blocks to collapse

    Returns:
        str: Content where every collapsed activatable block is replaced by
            a single ``[+] <summary> [...]`` line

    Example:
        >>> body = "Before\\n#+begin_src python\\nprint(1)\\n#+end_src"
        >>> render_collapsed(body, parse_blocks(body), {1})
        'Before\\n[+] Code block (python) [...]'
    """
    lines = content.split("\n")
    collapsed = {
        block.start_line: block
        for block in blocks
        if block.is_activatable and block.start_line in collapsed_starts
    }

    output: List[str] = []
    i = 0
    while i < len(lines):
        block = collapsed.get(i)
        if block is not None:
            output.append(f"[+] {block.summary()} [...]")
            i = block.end_line + 1
        else:
            output.append(lines[i])
            i += 1
    return "\n".join(output)
