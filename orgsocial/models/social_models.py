"""Org-social data models.

This module defines the data structures shared by the parser, the feed, the
thread builder and the notification engine.

Data Models:
    Profile: identity record from a document header; equal by (title, nick)
    Post: one timestamped entry with parsed tokens and blocks; equal by id
    PostType: classification derived from a post's fields

Profiles are frozen once parsed and are shared by reference: every post of the
same author in a Feed points at one Profile object. Posts own their parsed
content and re-derive it only through ``update_content``/``parse_content``.
"""

import unicodedata
from dataclasses import InitVar, dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import List, Optional, Tuple

from orgsocial.blocks import Block, BlockKind, parse_blocks
from orgsocial.tokenizer import Token, tokenize
from orgsocial.utils.timestamps import current_timestamp, parse_timestamp


@dataclass(frozen=True)
class Profile:
    """A participant's profile, parsed from the document header.

    Only ``title`` and ``nick`` take part in equality and hashing: two headers
    with the same title and nick are the same identity even when their other
    fields differ (for example, one copy fetched before an avatar change).

    Attributes:
        title: Display title (#+TITLE)
        nick: Nickname (#+NICK)
        description: Free-form description (#+DESCRIPTION)
        avatar: Avatar URL (#+AVATAR)
        links: Profile links (#+LINK, repeatable)
        follows: Followed feeds as (nick, url) pairs (#+FOLLOW, repeatable)
        contacts: Contact addresses (#+CONTACT, repeatable)
        source: URL the document was fetched from, if known
    """
    title: str
    nick: str
    description: Optional[str] = field(default=None, compare=False)
    avatar: Optional[str] = field(default=None, compare=False)
    links: Tuple[str, ...] = field(default=(), compare=False)
    follows: Tuple[Tuple[str, str], ...] = field(default=(), compare=False)
    contacts: Tuple[str, ...] = field(default=(), compare=False)
    source: Optional[str] = field(default=None, compare=False)

    def with_source(self, source: Optional[str]) -> "Profile":
        """Return a copy bound to a document URL (still equal to this profile)."""
        return replace(self, source=source)

    def to_org_social(self) -> str:
        """Serialize the profile as org-social header lines."""
        lines = []
        if self.title:
            lines.append(f"#+TITLE: {self.title}")
        if self.nick:
            lines.append(f"#+NICK: {self.nick}")
        if self.description:
            lines.append(f"#+DESCRIPTION: {self.description}")
        if self.avatar:
            lines.append(f"#+AVATAR: {self.avatar}")
        for link in self.links:
            lines.append(f"#+LINK: {link}")
        for nick, url in self.follows:
            lines.append(f"#+FOLLOW: {nick} {url}" if nick else f"#+FOLLOW: {url}")
        for contact in self.contacts:
            lines.append(f"#+CONTACT: {contact}")
        return "\n".join(lines)


class PostType(Enum):
    """Classification of a post derived from its fields."""
    REGULAR = "regular"
    REPLY = "reply"
    REACTION = "reaction"
    POLL = "poll"
    POLL_VOTE = "poll_vote"
    SIMPLE_POLL_VOTE = "simple_poll_vote"


@dataclass(eq=False)
class Post:
    """A single timestamped post.

    Equality and hashing use only ``id``. The ``auto_parse`` flag controls
    whether tokens and blocks are derived at construction time; it defaults
    to True so a freshly parsed post is ready for threading, polls and
    notifications. With ``auto_parse=False`` both lists stay empty until
    ``parse_content()`` is called.

    Attributes:
        id: Post id, an RFC 3339 timestamp in well-formed documents
        content: Raw post body
        reply_to: Target of a reply, ``<document url>#<post id>`` or a bare id
        poll_end: Poll deadline timestamp (poll posts only)
        poll_option: Chosen option label (vote posts only)
        lang: Language code (:LANG:)
        tags: Tags (:TAGS:)
        client: Client that wrote the post (:CLIENT:)
        mood: Mood / reaction emoji (:MOOD:)
        source: URL of the document the post came from
        tokens: Inline tokens of ``content``
        blocks: Blocks of ``content``
    """
    id: str
    content: str = ""
    reply_to: Optional[str] = None
    poll_end: Optional[str] = None
    poll_option: Optional[str] = None
    lang: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    client: Optional[str] = None
    mood: Optional[str] = None
    source: Optional[str] = None
    tokens: List[Token] = field(default_factory=list, init=False, repr=False)
    blocks: List[Block] = field(default_factory=list, init=False, repr=False)
    auto_parse: InitVar[bool] = True

    def __post_init__(self, auto_parse: bool):
        if auto_parse:
            self.parse_content()

    def __eq__(self, other):
        if not isinstance(other, Post):
            return NotImplemented
        return self.id == other.id

    def __hash__(self):
        return hash(self.id)

    @classmethod
    def new(cls, content: str, auto_parse: bool = True, **fields) -> "Post":
        """Create a post stamped with the current local time.

        Example:
            >>> post = Post.new("Hello *world*")
            >>> post.timestamp is not None
            True
        """
        return cls(id=current_timestamp(), content=content, auto_parse=auto_parse, **fields)

    def parse_content(self) -> None:
        """Derive tokens and blocks from the current content."""
        self.tokens = tokenize(self.content)
        self.blocks = parse_blocks(self.content, self.poll_end)

    def update_content(self, content: str, auto_parse: bool = True) -> None:
        """Replace the content and re-derive (or clear) tokens and blocks."""
        self.content = content
        if auto_parse:
            self.parse_content()
        else:
            self.tokens = []
            self.blocks = []

    @property
    def timestamp(self) -> Optional[datetime]:
        """The post id parsed as a datetime, None if it is not a timestamp."""
        return parse_timestamp(self.id)

    @property
    def full_id(self) -> str:
        """``<source>#<id>`` when the source is known, else the bare id."""
        if self.source:
            return f"{self.source}#{self.id}"
        return self.id

    @property
    def reply_target_id(self) -> Optional[str]:
        """Post id part of ``reply_to`` (the fragment after the last ``#``)."""
        if not self.reply_to:
            return None
        target = self.reply_to.rsplit("#", 1)[-1].strip()
        return target or None

    @property
    def reply_target_source(self) -> Optional[str]:
        """Document URL part of ``reply_to``, if it has one."""
        if not self.reply_to or "#" not in self.reply_to:
            return None
        return self.reply_to.rsplit("#", 1)[0] or None

    @property
    def is_poll_vote(self) -> bool:
        return bool(self.poll_option) and bool(self.reply_to)

    @property
    def has_poll_block(self) -> bool:
        return any(block.kind is BlockKind.POLL for block in self.blocks)

    @property
    def post_type(self) -> PostType:
        """Classify the post from its fields.

        Votes are checked first because a vote is also a reply. A poll needs
        both a deadline and a parsed poll block.
        """
        blank = not self.content.strip()
        if self.is_poll_vote:
            return PostType.SIMPLE_POLL_VOTE if blank else PostType.POLL_VOTE
        if self.reply_to:
            if self.mood and blank:
                return PostType.REACTION
            return PostType.REPLY
        if self.poll_end and self.has_poll_block:
            return PostType.POLL
        return PostType.REGULAR

    def summary(self, length: int) -> str:
        """Truncate content to at most ``length`` characters plus an ellipsis.

        Cuts on character boundaries and never separates a base character
        from the combining marks or joiners that follow it.
        """
        if length < 0:
            length = 0
        if len(self.content) <= length:
            return self.content

        cut = length
        # Back off while the next character would attach to the previous one
        while cut > 0 and (_is_continuation(self.content[cut]) or self.content[cut - 1] == ZERO_WIDTH_JOINER):
            cut -= 1
        return self.content[:cut] + "..."

    def to_org_social(self) -> str:
        """Serialize the post as an org-social post record."""
        lines = ["**", ":PROPERTIES:"]
        if self.id:
            lines.append(f":ID: {self.id}")
        if self.lang:
            lines.append(f":LANG: {self.lang}")
        if self.tags:
            lines.append(f":TAGS: {' '.join(self.tags)}")
        if self.client:
            lines.append(f":CLIENT: {self.client}")
        if self.reply_to:
            lines.append(f":REPLY_TO: {self.reply_to}")
        if self.poll_end:
            lines.append(f":POLL_END: {self.poll_end}")
        if self.poll_option:
            lines.append(f":POLL_OPTION: {self.poll_option}")
        if self.mood:
            lines.append(f":MOOD: {self.mood}")
        lines.append(":END:")
        lines.append("")
        lines.append(self.content)
        return "\n".join(lines)


ZERO_WIDTH_JOINER = "\u200d"


def _is_continuation(ch: str) -> bool:
    # Combining marks, zero-width joiner, variation selectors, skin tone modifiers
    if unicodedata.combining(ch):
        return True
    code = ord(ch)
    return (
        ch == ZERO_WIDTH_JOINER
        or 0xFE00 <= code <= 0xFE0F
        or 0x1F3FB <= code <= 0x1F3FF
        or 0xE0100 <= code <= 0xE01EF
    )
