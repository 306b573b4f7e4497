"""Notification Engine

Scans a Feed for posts that mention or reply to one identity.

A post mentions the target when:
    - one of its MENTION tokens points at the target's document URL, or its
      display name is the target's nick (with or without a leading ``@``), or
    - it is not a reply and its content contains ``@<nick>`` as a word
      (covers mentions written without link syntax).

A post replies to the target when its ``reply_to`` resolves to a post the
target authored, or names the target's document URL.

Each post yields at most one Notification; a post that does both is a
MENTION_AND_REPLY. The target's own posts never notify the target.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Iterator, List, Optional

import structlog

from orgsocial.feed import Feed, SortOrder
from orgsocial.models.social_models import Post, Profile
from orgsocial.tokenizer import mentions

logger = structlog.get_logger(__name__)


class NotificationType(Enum):
    MENTION = "mention"
    REPLY = "reply"
    MENTION_AND_REPLY = "mention_and_reply"


@dataclass(frozen=True)
class Notification:
    """A post relevant to the target identity.

    Attributes:
        post: The notifying post (owned by ``feed``)
        feed: Feed the post lives in; not an owner of the post
        kind: Why the post notifies the target
    """
    post: Post
    feed: Feed = field(compare=False, repr=False)
    kind: NotificationType

    @property
    def author(self) -> Optional[Profile]:
        return self.feed.profile_from_post(self.post.id)

    @property
    def timestamp(self) -> Optional[datetime]:
        return self.post.timestamp


def _mention_pattern(nick: str) -> "re.Pattern":
    return re.compile(r"(?<![\w@])@" + re.escape(nick) + r"(?![\w])")


def mentions_target(post: Post, target: Profile) -> bool:
    """True if ``post`` mentions ``target`` by token or by literal ``@nick``."""
    nick = target.nick
    for token in mentions(post.tokens):
        if target.source and token.target == target.source:
            return True
        if nick and token.text.lstrip("@") == nick:
            return True

    if nick and post.reply_to is None and _mention_pattern(nick).search(post.content):
        return True
    return False


def replies_to_target(post: Post, feed: Feed, target: Profile) -> bool:
    """True if ``post`` replies to something the target published."""
    parent_id = post.reply_target_id
    if parent_id is None:
        return False

    owner = feed.profile_from_post(parent_id)
    if owner is not None and owner == target:
        return True
    return bool(target.source) and post.reply_target_source == target.source


def classify(post: Post, feed: Feed, target: Profile) -> Optional[NotificationType]:
    """Notification kind for one post, or None if it does not concern ``target``."""
    mentioned = mentions_target(post, target)
    replied = replies_to_target(post, feed, target)

    if mentioned and replied:
        return NotificationType.MENTION_AND_REPLY
    if mentioned:
        return NotificationType.MENTION
    if replied:
        return NotificationType.REPLY
    return None


class NotificationFeed:
    """Deduplicated notifications for one identity, most recent first."""

    def __init__(self, feed: Feed, target: Profile, notifications: Optional[List[Notification]] = None):
        self.feed = feed
        self.target = target
        self.notifications: List[Notification] = notifications or []

    @classmethod
    def build(cls, feed: Feed, target: Profile) -> "NotificationFeed":
        """Scan every post in ``feed`` for mentions of and replies to ``target``.

        Args:
            feed: Populated Feed
            target: Identity to notify; its ``source`` (document URL) enables
                URL-based matching of mentions and replies

        Returns:
            NotificationFeed: One entry per notifying post, newest first
        """
        notifications = []
        seen = set()

        for post in feed.chronological_view(SortOrder.NEWEST_FIRST):
            if post.id in seen:
                continue
            if feed.profile_from_post(post.id) == target:
                continue

            kind = classify(post, feed, target)
            if kind is None:
                continue

            seen.add(post.id)
            notifications.append(Notification(post=post, feed=feed, kind=kind))

        logger.info(
            "notification_feed_built",
            nick=target.nick,
            scanned=len(feed),
            notifications=len(notifications)
        )
        return cls(feed, target, notifications)

    def __len__(self) -> int:
        return len(self.notifications)

    def __iter__(self) -> Iterator[Notification]:
        return iter(self.notifications)

    def by_type(self, kind: NotificationType) -> List[Notification]:
        return [n for n in self.notifications if n.kind is kind]

    def recent(self, limit: int) -> List[Notification]:
        if limit <= 0:
            return []
        return self.notifications[:limit]

    def in_range(self, start: datetime, end: datetime) -> List[Notification]:
        """Notifications with start <= timestamp <= end. Naive bounds are UTC."""
        if start.tzinfo is None:
            start = start.replace(tzinfo=timezone.utc)
        if end.tzinfo is None:
            end = end.replace(tzinfo=timezone.utc)
        return [
            n for n in self.notifications
            if n.timestamp is not None and start <= n.timestamp <= end
        ]
