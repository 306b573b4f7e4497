"""Poll Engine

Decodes a poll from a post's blocks and tallies votes from the reply posts
that point at it. Nothing here is cached: a Poll is a snapshot computed from
the posts passed in, so calling ``extract_poll`` again after new votes arrive
gives live counts.

Vote rules:
    - A vote is a post whose ``reply_to`` targets the poll post and whose
      ``poll_option`` equals one of the option labels (case-sensitive).
    - Each voter counts once. When a voter posted several votes, the one with
      the earliest timestamp counts (ties broken by post id).
    - Votes are counted regardless of when they were cast relative to the
      deadline; status is reported separately.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Dict, Hashable, Iterable, List, Optional, Tuple

import structlog

from orgsocial.blocks import find_poll_block
from orgsocial.models.social_models import Post
from orgsocial.utils.timestamps import parse_timestamp

logger = structlog.get_logger(__name__)

# Sort key for posts without a parseable timestamp: after every real one
_LATEST = datetime.max.replace(tzinfo=timezone.utc)


class PollStatus(Enum):
    ACTIVE = "active"
    ENDED = "ended"


@dataclass(frozen=True)
class PollOption:
    """One poll option with its tally.

    Attributes:
        label: Option text as written after ``- [ ]``
        vote_count: Counted votes for this option
        percentage: Share of all counted votes, 0.0 when nobody voted
    """
    label: str
    vote_count: int = 0
    percentage: float = 0.0


@dataclass(frozen=True)
class Poll:
    """A poll evaluated at one instant.

    Attributes:
        post_id: Id of the post that owns the poll
        options: Options in document order
        poll_end: Deadline as written in the post
        status: ACTIVE until the evaluation time passes ``poll_end``
    """
    post_id: str
    options: Tuple[PollOption, ...]
    poll_end: str
    status: PollStatus

    @property
    def total_votes(self) -> int:
        return sum(option.vote_count for option in self.options)

    @property
    def is_active(self) -> bool:
        return self.status is PollStatus.ACTIVE

    def results(self) -> List[Tuple[str, int, float]]:
        """Return (label, vote_count, percentage) rows in option order."""
        return [(o.label, o.vote_count, o.percentage) for o in self.options]

    def summary(self) -> str:
        """One-line description, e.g. ``Poll: 3 options, 5 votes (active)``."""
        votes = self.total_votes
        return (
            f"Poll: {len(self.options)} options, "
            f"{votes} vote{'' if votes == 1 else 's'} ({self.status.value})"
        )


def poll_status(poll_end: datetime, now: datetime) -> PollStatus:
    """ENDED only once ``now`` is strictly after the deadline."""
    return PollStatus.ENDED if now > poll_end else PollStatus.ACTIVE


def _default_voter(post: Post) -> Hashable:
    return post.source or post.id


def _vote_order(post: Post) -> Tuple[datetime, str]:
    return (post.timestamp or _LATEST, post.id)


def targets_post(vote: Post, poll_post: Post) -> bool:
    """True if ``vote`` replies to ``poll_post``.

    The id fragment must match; when both sides know their document URL the
    URLs must match too.
    """
    if vote.reply_target_id != poll_post.id:
        return False
    target_source = vote.reply_target_source
    if target_source and poll_post.source:
        return target_source == poll_post.source
    return True


def tally_votes(
    poll_post: Post,
    labels: List[str],
    all_posts: Iterable[Post],
    voter_of: Callable[[Post], Hashable] = _default_voter,
) -> Dict[str, int]:
    """Count one vote per voter for each label.

    Args:
        poll_post: The post that owns the poll
        labels: Option labels
        all_posts: Candidate vote posts (anything else is ignored)
        voter_of: Maps a vote post to its voter identity

    Returns:
        dict: label -> vote count, with every label present
    """
    valid = set(labels)
    chosen: Dict[Hashable, Post] = {}

    for post in all_posts:
        if post.poll_option is None or post.poll_option not in valid:
            continue
        if not targets_post(post, poll_post):
            continue

        voter = voter_of(post)
        current = chosen.get(voter)
        if current is None or _vote_order(post) < _vote_order(current):
            chosen[voter] = post

    counts = {label: 0 for label in labels}
    for vote in chosen.values():
        counts[vote.poll_option] += 1
    return counts


def extract_poll(
    post: Post,
    all_posts: Iterable[Post],
    now: Optional[datetime] = None,
    voter_of: Optional[Callable[[Post], Hashable]] = None,
) -> Optional[Poll]:
    """Decode and tally the poll carried by ``post``.

    Args:
        post: Candidate poll post
        all_posts: Posts to scan for votes (typically every post in a Feed)
        now: Evaluation time (default: current UTC time)
        voter_of: Voter identity for a vote post. Defaults to the vote's
            document URL, falling back to the vote's own id.

    Returns:
        Poll, or None when the post has no ``poll_end``, no poll block, or a
        ``poll_end`` that is not a timestamp

    Example:
        >>> poll = extract_poll(poll_post, feed_posts)
        >>> [(o.label, o.vote_count) for o in poll.options]
        [('Red', 2), ('Blue', 1)]
    """
    if not post.poll_end:
        return None

    block = find_poll_block(post.blocks)
    if block is None or not block.options:
        return None

    deadline = parse_timestamp(post.poll_end)
    if deadline is None:
        logger.warning("poll_end_unparseable", post_id=post.id, poll_end=post.poll_end)
        return None

    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    labels = list(block.options)
    counts = tally_votes(post, labels, all_posts, voter_of or _default_voter)
    total = sum(counts.values())

    options = tuple(
        PollOption(
            label=label,
            vote_count=counts[label],
            percentage=(counts[label] / total * 100.0) if total else 0.0,
        )
        for label in labels
    )

    return Poll(
        post_id=post.id,
        options=options,
        poll_end=post.poll_end,
        status=poll_status(deadline, now),
    )


def create_vote_reply(poll_post_id: str, option: str, content: str = "", **fields) -> Post:
    """Create a vote post answering a poll.

    Args:
        poll_post_id: ``reply_to`` value, a bare id or ``<url>#<id>``
        option: Label of the chosen option
        content: Optional comment; a blank vote is a simple poll vote

    Returns:
        Post: New post stamped with the current time
    """
    if not option:
        raise ValueError("option must not be empty")
    return Post.new(content, reply_to=poll_post_id, poll_option=option, **fields)
