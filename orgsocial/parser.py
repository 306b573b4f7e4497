"""Org-social Document Parser

This module parses a participant's social.org document into a Profile and a
list of Posts, and serializes them back.

Document layout:
    #+TITLE: Alice's feed           <- header fields, one per line
    #+NICK: alice
    #+FOLLOW: bob https://bob.example/social.org

    * Posts
    **
    :PROPERTIES:
    :ID: 2025-05-01T12:00:00+0100
    :REPLY_TO: https://bob.example/social.org#2025-04-30T09:00:00+00:00
    :END:

    Post body...

A malformed header field is never fatal: it is logged and treated as absent.
Empty field values (``:REPLY_TO:`` with nothing after it) parse as None.
"""

import re
from typing import Dict, List, Optional, Tuple

import structlog

from orgsocial.models.social_models import Post, Profile

logger = structlog.get_logger(__name__)

POSTS_HEADING = "* Posts"
POST_PREFIX = "**"
PROPERTIES_START = ":PROPERTIES:"
PROPERTIES_END = ":END:"

PROPERTY_PATTERN = re.compile(r"^:([A-Za-z_]+):(?:\s+(.*))?\s*$")

# Header keys whose values accumulate into a tuple
REPEATABLE_HEADER_KEYS = {"LINK", "FOLLOW", "CONTACT"}
SINGLE_HEADER_KEYS = {"TITLE", "NICK", "DESCRIPTION", "AVATAR"}


class ParseError(ValueError):
    """A header field could not be understood.

    Raised by the field-level helpers and always recovered inside
    ``parse_profile``: the field is dropped and parsing continues.
    """

    def __init__(self, message: str, line_number: Optional[int] = None, line: Optional[str] = None):
        super().__init__(message)
        self.line_number = line_number
        self.line = line


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def parse_header_field(line: str, line_number: Optional[int] = None) -> Optional[Tuple[str, Optional[str]]]:
    """Split one ``#+KEY: value`` header line.

    Args:
        line: Raw header line
        line_number: 0-based line index, for error context

    Returns:
        (KEY, value) with the key upper-cased and an empty value as None, or
        None when the line is not a header field at all (blank, comment, prose)

    Raises:
        ParseError: If the line starts with ``#+`` but has no ``:`` separator
            or an empty key
    """
    stripped = line.strip()
    if not stripped.startswith("#+"):
        return None

    if ":" not in stripped:
        raise ParseError("header field has no ':' separator", line_number, line)

    key, _, value = stripped[2:].partition(":")
    key = key.strip().upper()
    if not key:
        raise ParseError("header field has an empty key", line_number, line)

    return key, _blank_to_none(value)


def parse_follow(value: str, line_number: Optional[int] = None) -> Tuple[str, str]:
    """Parse a #+FOLLOW value: ``nick url`` or a bare ``url``.

    Raises:
        ParseError: If no URL-looking part is present
    """
    parts = value.split(None, 1)
    if len(parts) == 2:
        nick, url = parts[0], parts[1].strip()
    else:
        nick, url = "", parts[0]

    if "://" not in url:
        raise ParseError(f"#+FOLLOW value has no url: {value!r}", line_number, value)
    return nick, url


def parse_profile(lines: List[str], source: Optional[str] = None) -> Profile:
    """Build a Profile from the header lines of a document.

    Unknown keys are ignored. Malformed fields are logged as
    ``profile_field_malformed`` and skipped.

    Args:
        lines: Lines before the ``* Posts`` heading
        source: URL the document came from

    Returns:
        Profile: The parsed (frozen) profile
    """
    single: Dict[str, Optional[str]] = {}
    repeated: Dict[str, list] = {key: [] for key in REPEATABLE_HEADER_KEYS}

    for line_number, line in enumerate(lines):
        try:
            parsed = parse_header_field(line, line_number)
            if parsed is None:
                continue
            key, value = parsed
            if value is None:
                continue

            if key in SINGLE_HEADER_KEYS:
                single[key] = value
            elif key == "FOLLOW":
                repeated[key].append(parse_follow(value, line_number))
            elif key in REPEATABLE_HEADER_KEYS:
                repeated[key].append(value)
        except ParseError as e:
            logger.warning(
                "profile_field_malformed",
                source=source,
                line_number=e.line_number,
                line=e.line,
                error=str(e)
            )

    return Profile(
        title=single.get("TITLE") or "",
        nick=single.get("NICK") or "",
        description=single.get("DESCRIPTION"),
        avatar=single.get("AVATAR"),
        links=tuple(repeated["LINK"]),
        follows=tuple(repeated["FOLLOW"]),
        contacts=tuple(repeated["CONTACT"]),
        source=source,
    )


def parse_post(lines: List[str], source: Optional[str] = None, auto_parse: bool = True) -> Optional[Post]:
    """Build a Post from the lines of one post record.

    The properties drawer may begin on the ``**`` line itself
    (``** :PROPERTIES:``). Content is every line after ``:END:`` with leading
    blank lines dropped and one trailing newline removed.

    Args:
        lines: Lines of one record, starting with the ``**`` line
        source: URL the document came from
        auto_parse: Tokenize and block-parse the content immediately

    Returns:
        Post, or None if the record has no :ID: (logged as ``post_id_missing``)
    """
    properties: Dict[str, Optional[str]] = {}
    content_lines: List[str] = []
    in_properties = False
    properties_ended = False

    for line in lines:
        stripped = line.strip()

        if not properties_ended:
            if stripped.startswith(POST_PREFIX) and PROPERTIES_START in stripped:
                in_properties = True
                continue
            if stripped == PROPERTIES_START:
                in_properties = True
                continue
            if stripped == PROPERTIES_END and in_properties:
                in_properties = False
                properties_ended = True
                continue
            if stripped == POST_PREFIX or not in_properties:
                continue

            match = PROPERTY_PATTERN.match(stripped)
            if match:
                properties[match.group(1).upper()] = _blank_to_none(match.group(2))
            continue

        # Skip blank lines between :END: and the first content line
        if not content_lines and not stripped:
            continue
        content_lines.append(line)

    content = "\n".join(content_lines)
    if content.endswith("\n"):
        content = content[:-1]

    post_id = properties.get("ID")
    if not post_id:
        logger.warning("post_id_missing", source=source, first_line=lines[0] if lines else None)
        return None

    tags_value = properties.get("TAGS")
    return Post(
        id=post_id,
        content=content,
        reply_to=properties.get("REPLY_TO"),
        poll_end=properties.get("POLL_END"),
        poll_option=properties.get("POLL_OPTION"),
        lang=properties.get("LANG"),
        tags=tags_value.split() if tags_value else [],
        client=properties.get("CLIENT"),
        mood=properties.get("MOOD"),
        source=source,
        auto_parse=auto_parse,
    )


def parse_document(
    text: str,
    source: Optional[str] = None,
    auto_parse: bool = True,
) -> Tuple[Profile, List[Post]]:
    """Parse a complete org-social document.

    Args:
        text: Raw document text
        source: URL the document was fetched from; stored on the profile and
            on every post so replies can be resolved across documents
        auto_parse: Tokenize and block-parse post content immediately

    Returns:
        tuple: (Profile, list[Post]) with posts in document order

    Example:
        >>> profile, posts = parse_document(open("social.org").read(), "https://alice.example/social.org")
        >>> profile.nick, len(posts)
        ('alice', 42)
    """
    lines = text.splitlines()

    posts_index = next(
        (i for i, line in enumerate(lines) if line.startswith(POSTS_HEADING)),
        len(lines)
    )

    profile = parse_profile(lines[:posts_index], source)

    posts: List[Post] = []
    post_lines = lines[posts_index + 1:]
    starts = [i for i, line in enumerate(post_lines) if line.startswith(POST_PREFIX)]

    for n, start in enumerate(starts):
        end = starts[n + 1] if n + 1 < len(starts) else len(post_lines)
        post = parse_post(post_lines[start:end], source, auto_parse)
        if post is not None:
            posts.append(post)

    logger.debug(
        "document_parsed",
        source=source,
        nick=profile.nick,
        post_count=len(posts)
    )

    return profile, posts


def serialize_document(profile: Profile, posts: List[Post]) -> str:
    """Serialize a profile and its posts back into an org-social document."""
    output = []

    header = profile.to_org_social()
    if header:
        output.append(header)
        output.append("")

    output.append(POSTS_HEADING)
    for post in posts:
        output.append(post.to_org_social())
        output.append("")

    # No trailing blank line after the last post
    if output and output[-1] == "":
        output.pop()

    return "\n".join(output)
