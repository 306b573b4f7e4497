"""Thread Builder

Derives reply trees from the posts held by a Feed.

A ThreadView never owns posts: its nodes hold post ids and resolve them
through the Feed it was built from. The forest is searched with explicit
stacks rather than recursion, and there is no separate parent index, so each
insertion costs a walk over the current forest.

Ordering:
    - Roots: by latest activity (newest timestamp anywhere in the thread),
      newest first; ties by root post id.
    - Replies under a node: oldest first.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterator, List, Optional, Tuple

import structlog

from orgsocial.feed import Feed, SortOrder
from orgsocial.models.social_models import Post

logger = structlog.get_logger(__name__)

_EARLIEST = datetime.min.replace(tzinfo=timezone.utc)
_LATEST = datetime.max.replace(tzinfo=timezone.utc)


@dataclass
class ThreadNode:
    """One post in a thread and the replies to it."""
    post_id: str
    children: List["ThreadNode"] = field(default_factory=list)

    def descendants(self) -> Iterator["ThreadNode"]:
        """Every node below this one, depth-first."""
        stack = list(reversed(self.children))
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    @property
    def reply_count(self) -> int:
        return sum(1 for _ in self.descendants())

    def contains(self, post_id: str) -> bool:
        if self.post_id == post_id:
            return True
        return any(node.post_id == post_id for node in self.descendants())


class ThreadView:
    """Forest of reply threads over one Feed.

    Example:
        >>> view = ThreadView.build(feed)
        >>> for depth, node in view.walk():
        ...     print("  " * depth + view.post(node).summary(60))
    """

    def __init__(self, feed: Feed):
        self.feed = feed
        self.roots: List[ThreadNode] = []
        self._placed = set()

    @classmethod
    def build(cls, feed: Feed) -> "ThreadView":
        """Build the full forest from every post in ``feed``."""
        view = cls(feed)
        for post in feed.chronological_view(SortOrder.OLDEST_FIRST):
            view._place(post)
        view._sort()
        return view

    def insert_post(self, post: Post) -> ThreadNode:
        """Attach one post that is already in the Feed.

        Inserting an id that is already in the forest returns its node
        unchanged. Orphan roots replying to the new post are moved under it.

        Raises:
            ValueError: If the post has not been ingested into the Feed
        """
        if post.id not in self.feed:
            raise ValueError(f"Post {post.id!r} is not in the feed")

        node = self._place(post)
        self._sort()
        return node

    def _place(self, post: Post) -> ThreadNode:
        if post.id in self._placed:
            return self.find(post.id)

        node = ThreadNode(post_id=post.id)
        parent_id = post.reply_target_id
        parent = None
        if parent_id and parent_id != post.id:
            parent = self.find(parent_id)

        if parent is not None:
            parent.children.append(node)
        else:
            self.roots.append(node)
        self._placed.add(post.id)

        self._reattach_orphans(node)
        return node

    def _reattach_orphans(self, node: ThreadNode) -> None:
        """Move roots whose parent is ``node`` under it."""
        for root in list(self.roots):
            if root is node:
                continue
            root_post = self.feed.get(root.post_id)
            if root_post is None or root_post.reply_target_id != node.post_id:
                continue
            # Reply cycle: node already hangs somewhere below this root
            if root.contains(node.post_id):
                continue

            self.roots.remove(root)
            node.children.append(root)
            logger.debug(
                "thread_orphan_reattached",
                post_id=root.post_id,
                parent_id=node.post_id
            )

    def _sort(self) -> None:
        stack = list(self.roots)
        while stack:
            node = stack.pop()
            node.children.sort(key=self._reply_key)
            stack.extend(node.children)

        self.roots.sort(key=lambda root: root.post_id)
        # Stable with reverse=True, so equal activity keeps the id order
        self.roots.sort(key=lambda root: self.latest_activity(root) or _EARLIEST, reverse=True)

    def _reply_key(self, node: ThreadNode) -> Tuple[datetime, str]:
        post = self.feed.get(node.post_id)
        ts = post.timestamp if post is not None else None
        return (ts or _LATEST, node.post_id)

    def latest_activity(self, root: ThreadNode) -> Optional[datetime]:
        """Newest timestamp anywhere in the thread rooted at ``root``."""
        latest = None
        for node in [root, *root.descendants()]:
            post = self.feed.get(node.post_id)
            ts = post.timestamp if post is not None else None
            if ts is not None and (latest is None or ts > latest):
                latest = ts
        return latest

    @property
    def thread_count(self) -> int:
        return len(self.roots)

    @property
    def total_posts(self) -> int:
        return sum(1 + root.reply_count for root in self.roots)

    def walk(self) -> Iterator[Tuple[int, ThreadNode]]:
        """Yield (depth, node) in display order: each thread depth-first."""
        stack = [(0, root) for root in reversed(self.roots)]
        while stack:
            depth, node = stack.pop()
            yield depth, node
            stack.extend((depth + 1, child) for child in reversed(node.children))

    def flatten(self) -> List[Post]:
        """Posts in display order."""
        return [self.feed.get(node.post_id) for _, node in self.walk()]

    def find(self, post_id: str) -> Optional[ThreadNode]:
        """Locate a node anywhere in the forest."""
        stack = list(self.roots)
        while stack:
            node = stack.pop()
            if node.post_id == post_id:
                return node
            stack.extend(node.children)
        return None

    def post(self, node: ThreadNode) -> Optional[Post]:
        return self.feed.get(node.post_id)

    def depths(self) -> Dict[str, int]:
        """post id -> depth in its thread (roots are 0)."""
        return {node.post_id: depth for depth, node in self.walk()}
