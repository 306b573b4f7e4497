"""Feed: the canonical post set.

A Feed owns every ingested Post and maps each post id to the Profile that
authored it. Profiles are shared: all posts of one identity point at a single
Profile object, the first one ingested for that (title, nick).

All mutation goes through ``ingest``. Every other method is a read.

Example:
    >>> feed = Feed.create_combined_feed([(alice, alice_posts), (bob, bob_posts)])
    >>> for post in feed.chronological_view(SortOrder.NEWEST_FIRST):
    ...     print(feed.profile_from_post(post.id).nick, post.summary(40))
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Iterable, Iterator, List, Optional, Set, Tuple

import structlog

from orgsocial.models.social_models import Post, Profile
from orgsocial.poll import Poll, extract_poll

logger = structlog.get_logger(__name__)


class DuplicatePostIdError(Exception):
    """A post id is already owned by a different profile.

    Attributes:
        post_id: Colliding id
        existing_profile: Profile that already owns the id
        incoming_profile: Profile whose batch was rejected
    """

    def __init__(self, post_id: str, existing_profile: Profile, incoming_profile: Profile):
        super().__init__(
            f"Post id {post_id!r} already belongs to {existing_profile.nick!r}, "
            f"rejected for {incoming_profile.nick!r}"
        )
        self.post_id = post_id
        self.existing_profile = existing_profile
        self.incoming_profile = incoming_profile


class SortOrder(Enum):
    NEWEST_FIRST = "newest_first"
    OLDEST_FIRST = "oldest_first"


def sort_posts(posts: Iterable[Post], order: SortOrder = SortOrder.NEWEST_FIRST) -> List[Post]:
    """Sort posts by timestamp with post id as the tie-break.

    Posts whose id is not a timestamp go last in either order, by id.
    """
    dated = []
    undated = []
    for post in posts:
        ts = post.timestamp
        if ts is None:
            undated.append(post)
        else:
            dated.append((ts, post.id, post))

    dated.sort(key=lambda item: (item[0], item[1]), reverse=order is SortOrder.NEWEST_FIRST)
    undated.sort(key=lambda post: post.id)
    return [post for _, _, post in dated] + undated


class ChronologicalView:
    """Lazy, restartable sorted view over a Feed.

    Each iteration sorts the Feed's current posts afresh, so a view taken
    before an ingest reflects the new posts when iterated again.
    """

    def __init__(self, feed: "Feed", order: SortOrder = SortOrder.NEWEST_FIRST):
        self.feed = feed
        self.order = order

    def __iter__(self) -> Iterator[Post]:
        return iter(sort_posts(self.feed.posts(), self.order))

    def __len__(self) -> int:
        return len(self.feed)


class Feed:
    """Posts from many org-social documents, keyed by post id."""

    def __init__(self):
        self._posts: Dict[str, Post] = {}
        self._owners: Dict[str, Profile] = {}
        # Profile -> the single shared instance for that identity
        self._registry: Dict[Profile, Profile] = {}

    def __len__(self) -> int:
        return len(self._posts)

    def __contains__(self, post_id) -> bool:
        if isinstance(post_id, Post):
            post_id = post_id.id
        return post_id in self._posts

    def __repr__(self) -> str:
        return f"Feed(posts={len(self._posts)}, profiles={len(self._registry)})"

    def ingest(self, profile: Profile, posts: Iterable[Post]) -> Profile:
        """Add a profile and its posts.

        The whole batch is checked before anything is stored, so a rejected
        batch leaves the Feed untouched. Re-ingesting a post id under the same
        profile replaces the stored post.

        Args:
            profile: Author of ``posts``
            posts: Posts from that author's document

        Returns:
            Profile: The shared instance now used for this identity (may be an
                earlier-ingested object equal to ``profile``)

        Raises:
            DuplicatePostIdError: If any post id already belongs to a
                different profile
        """
        posts = list(posts)

        for post in posts:
            existing = self._owners.get(post.id)
            if existing is not None and existing != profile:
                logger.warning(
                    "duplicate_post_id_rejected",
                    post_id=post.id,
                    existing_nick=existing.nick,
                    incoming_nick=profile.nick
                )
                raise DuplicatePostIdError(post.id, existing, profile)

        shared = self._registry.setdefault(profile, profile)

        replaced = 0
        for post in posts:
            if post.id in self._posts:
                replaced += 1
            self._posts[post.id] = post
            self._owners[post.id] = shared

        logger.info(
            "feed_ingested",
            nick=shared.nick,
            source=profile.source,
            posts=len(posts),
            replaced=replaced,
            total=len(self._posts)
        )
        return shared

    @classmethod
    def create_combined_feed(cls, profiles_and_posts: Iterable[Tuple[Profile, Iterable[Post]]]) -> "Feed":
        """Merge several (profile, posts) batches into one Feed.

        A post id seen in more than one batch of the same identity is kept
        once (the last copy wins).

        Raises:
            DuplicatePostIdError: If two different profiles claim one post id
        """
        feed = cls()
        for profile, posts in profiles_and_posts:
            feed.ingest(profile, posts)
        return feed

    def get(self, post_id: str) -> Optional[Post]:
        return self._posts.get(post_id)

    def profile_from_post(self, post_id: str) -> Optional[Profile]:
        """Author of a post, or None if the id is unknown."""
        return self._owners.get(post_id)

    def posts(self) -> List[Post]:
        """All posts, in ingest order."""
        return list(self._posts.values())

    def chronological_view(self, order: SortOrder = SortOrder.NEWEST_FIRST) -> ChronologicalView:
        return ChronologicalView(self, order)

    def recent(self, limit: int) -> List[Post]:
        """The ``limit`` newest posts, newest first."""
        if limit <= 0:
            return []
        return sort_posts(self._posts.values(), SortOrder.NEWEST_FIRST)[:limit]

    def posts_in_range(
        self,
        start: datetime,
        end: datetime,
        order: SortOrder = SortOrder.NEWEST_FIRST
    ) -> List[Post]:
        """Posts with start <= timestamp <= end. Naive bounds are taken as UTC."""
        if start.tzinfo is None:
            start = start.replace(tzinfo=timezone.utc)
        if end.tzinfo is None:
            end = end.replace(tzinfo=timezone.utc)

        selected = [
            post for post in self._posts.values()
            if post.timestamp is not None and start <= post.timestamp <= end
        ]
        return sort_posts(selected, order)

    def posts_from_source(self, source: str) -> List[Post]:
        return [post for post in self._posts.values() if post.source == source]

    def posts_by(self, profile: Profile) -> List[Post]:
        return [post for post in self._posts.values() if self._owners[post.id] == profile]

    def sources(self) -> Set[str]:
        return {post.source for post in self._posts.values() if post.source}

    def profiles(self) -> List[Profile]:
        """Distinct profiles, one shared instance each, in ingest order."""
        return list(self._registry.values())

    def poll(self, post_id: str, now: Optional[datetime] = None) -> Optional[Poll]:
        """Evaluate the poll on ``post_id`` against every post in the feed.

        Votes are keyed by authoring profile, so one author counts once even
        when publishing from several documents.
        """
        post = self._posts.get(post_id)
        if post is None:
            return None

        def voter_of(vote: Post):
            return self._owners.get(vote.id) or vote.source or vote.id

        return extract_poll(post, self._posts.values(), now=now, voter_of=voter_of)
