"""Inline Content Tokenizer

This module lexes the body of an org-social post into a flat, ordered list of
typed tokens: plain text, emphasis variants, inline code, links and mentions.

Tokenizing never fails. Any delimiter that cannot be paired (unterminated,
empty, padded with whitespace, or spanning a newline) is kept as literal text,
and adjacent literal text is merged into a single PlainText token. Emphasis
may open and close inside a word, so ``x*bold*s`` still holds a Bold token.

Supported syntax:
    *bold*  /italic/  */bold italic/*  _underline_  +strike+  ~code~  =verbatim=
    [[url]]  [[url][description]]  http://bare.url  https://bare.url
    [[org-social:https://host/social.org][nick]]   (mention)
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional

MENTION_PREFIX = "org-social:"
URL_PREFIXES = ("https://", "http://")

# Characters that end a bare URL
URL_TERMINATORS = set(")]>\"'*~")
# Trailing punctuation that belongs to the sentence, not the URL
URL_TRAILING_PUNCTUATION = ".,;:!?"


class TokenKind(Enum):
    """Closed set of inline token kinds."""
    PLAIN_TEXT = "plain_text"
    BOLD = "bold"
    ITALIC = "italic"
    BOLD_ITALIC = "bold_italic"
    UNDERLINE = "underline"
    STRIKETHROUGH = "strikethrough"
    CODE = "code"
    VERBATIM = "verbatim"
    LINK = "link"
    MENTION = "mention"


# Ordered: multi-character delimiters must be tried before their prefixes
EMPHASIS_DELIMITERS = (
    ("*/", "/*", TokenKind.BOLD_ITALIC),
    ("*", "*", TokenKind.BOLD),
    ("/", "/", TokenKind.ITALIC),
    ("_", "_", TokenKind.UNDERLINE),
    ("+", "+", TokenKind.STRIKETHROUGH),
    ("~", "~", TokenKind.CODE),
    ("=", "=", TokenKind.VERBATIM),
)

_SPECIAL_CHARS = {opener[0] for opener, _, _ in EMPHASIS_DELIMITERS} | {"[", "h"}


@dataclass(frozen=True)
class Token:
    """A single inline token.

    Attributes:
        kind: Token kind
        text: Inner text (emphasis content, link description or url, mention nick)
        raw: Literal source span, delimiters included
        target: URL for LINK and MENTION tokens, None otherwise
    """
    kind: TokenKind
    text: str
    raw: str
    target: Optional[str] = None

    @property
    def is_plain(self) -> bool:
        return self.kind is TokenKind.PLAIN_TEXT


class Tokenizer:
    """Left-to-right scanner over one content string.

    Example:
        >>> Tokenizer("This is *bold* text").tokenize()
        [Token(kind=<TokenKind.PLAIN_TEXT: 'plain_text'>, text='This is ', ...),
         Token(kind=<TokenKind.BOLD: 'bold'>, text='bold', raw='*bold*', ...),
         Token(kind=<TokenKind.PLAIN_TEXT: 'plain_text'>, text=' text', ...)]
    """

    def __init__(self, content: str):
        self.input = content or ""
        self.position = 0

    def tokenize(self) -> List[Token]:
        tokens: List[Token] = []
        plain_start = None

        while self.position < len(self.input):
            start = self.position
            token = None
            if self.input[start] in _SPECIAL_CHARS:
                token = self._next_structured_token()

            if token is None:
                # Literal character: extend the pending plain text run
                if plain_start is None:
                    plain_start = self.position
                self.position += 1
                continue

            if plain_start is not None:
                tokens.append(self._plain(self.input[plain_start:start]))
                plain_start = None
            tokens.append(token)

        if plain_start is not None:
            tokens.append(self._plain(self.input[plain_start:]))

        return tokens

    def _next_structured_token(self) -> Optional[Token]:
        """Try every structured form at the current position."""
        start = self.position

        if self.input.startswith("[[", start):
            token = self._match_bracket_link()
        elif self.input.startswith(URL_PREFIXES, start):
            token = self._match_bare_url()
        else:
            token = None
            for opener, closer, kind in EMPHASIS_DELIMITERS:
                token = self._match_delimited(opener, closer, kind)
                if token is not None:
                    break

        return token

    def _match_delimited(self, opener: str, closer: str, kind: TokenKind) -> Optional[Token]:
        """Pair ``opener`` at the current position with the first ``closer`` after it.

        Shared by every emphasis kind so they all degrade the same way. The
        first closer wins; there is no nesting of identical delimiters.
        """
        start = self.position
        if not self.input.startswith(opener, start):
            return None

        inner_start = start + len(opener)
        inner_end = self.input.find(closer, inner_start)
        if inner_end == -1:
            return None

        inner = self.input[inner_start:inner_end]
        if not inner or "\n" in inner or inner[0].isspace() or inner[-1].isspace():
            return None

        end = inner_end + len(closer)
        self.position = end
        return Token(kind=kind, text=inner, raw=self.input[start:end])

    def _match_bracket_link(self) -> Optional[Token]:
        """Parse ``[[target]]`` or ``[[target][description]]``.

        A target with the org-social: scheme is a mention; it takes priority
        over the generic link reading of the same span.
        """
        start = self.position
        end = self.input.find("]]", start + 2)
        if end == -1:
            return None

        inner = self.input[start + 2:end]
        if not inner or "\n" in inner:
            return None

        if "][" in inner:
            target, description = inner.split("][", 1)
        else:
            target, description = inner, None

        if not target:
            return None

        raw = self.input[start:end + 2]
        self.position = end + 2

        if target.startswith(MENTION_PREFIX):
            url = target[len(MENTION_PREFIX):]
            return Token(kind=TokenKind.MENTION, text=description or url, raw=raw, target=url)

        return Token(kind=TokenKind.LINK, text=description or target, raw=raw, target=target)

    def _match_bare_url(self) -> Optional[Token]:
        start = self.position
        if start > 0 and self.input[start - 1].isalnum():
            return None

        end = start
        while end < len(self.input):
            ch = self.input[end]
            if ch.isspace() or ch in URL_TERMINATORS:
                break
            end += 1

        url = self.input[start:end].rstrip(URL_TRAILING_PUNCTUATION)
        # Scheme only, nothing after it
        if url in URL_PREFIXES:
            return None

        self.position = start + len(url)
        return Token(kind=TokenKind.LINK, text=url, raw=url, target=url)

    @staticmethod
    def _plain(text: str) -> Token:
        return Token(kind=TokenKind.PLAIN_TEXT, text=text, raw=text)


def tokenize(content: str) -> List[Token]:
    """Tokenize post content.

    Args:
        content: Raw post body

    Returns:
        list[Token]: Tokens in document order. Concatenating every token's
            ``raw`` reproduces the input exactly.

    Example:
        >>> [t.kind.value for t in tokenize("Hi [[org-social:https://a.org/social.org][alice]]!")]
        ['plain_text', 'mention', 'plain_text']
    """
    return Tokenizer(content).tokenize()


def mentions(tokens: Iterable[Token]) -> List[Token]:
    """Return the MENTION tokens from a token sequence."""
    return [token for token in tokens if token.kind is TokenKind.MENTION]


def to_plain_text(tokens: Iterable[Token]) -> str:
    """Render tokens without markup (links and mentions by their display text)."""
    return "".join(token.text for token in tokens)
