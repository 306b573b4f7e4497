"""
Shared pytest fixtures for orgsocial tests.

Fixtures provide two participants (alice and bob), a complete sample document
and a small post factory. All tests are behavioral: they check what the
parser, feed, thread and notification code produce, not how.
"""

import pytest

from orgsocial.config import Settings
from orgsocial.models.social_models import Post, Profile

ALICE_URL = "https://alice.example/social.org"
BOB_URL = "https://bob.example/social.org"
CAROL_URL = "https://carol.example/social.org"


SAMPLE_DOCUMENT = """#+TITLE: Alice's journal
#+NICK: alice
#+DESCRIPTION: Notes from the garden
#+AVATAR: https://alice.example/avatar.png
#+LINK: https://alice.example
#+FOLLOW: bob https://bob.example/social.org
#+FOLLOW: https://carol.example/social.org
#+CONTACT: mailto:alice@alice.example

* Posts
**
:PROPERTIES:
:ID: 2025-05-01T10:00:00+00:00
:LANG: en
:TAGS: garden spring
:CLIENT: org-social.el
:END:

First tomatoes of the year, *finally*.

**
:PROPERTIES:
:ID: 2025-05-02T09:30:00+0200
:POLL_END: 2025-05-09T09:30:00+02:00
:END:

Which bed gets the peppers?

- [ ] North
- [ ] South
- [ ] Greenhouse

** :PROPERTIES:
:ID: 2025-05-03T08:00:00+00:00
:REPLY_TO: https://bob.example/social.org#2025-05-02T20:00:00+00:00
:MOOD:
:END:

Thanks [[org-social:https://bob.example/social.org][bob]]!
"""


BOB_DOCUMENT = """#+TITLE: Bob's log
#+NICK: bob
#+FOLLOW: alice https://alice.example/social.org

* Posts
**
:PROPERTIES:
:ID: 2025-05-02T20:00:00+00:00
:END:

Seedlings are up.

**
:PROPERTIES:
:ID: 2025-05-04T07:00:00+00:00
:REPLY_TO: https://alice.example/social.org#2025-05-01T10:00:00+00:00
:END:

Nice one [[org-social:https://alice.example/social.org][alice]]
"""


@pytest.fixture
def alice():
    """Alice's profile bound to her document URL."""
    return Profile(title="Alice's journal", nick="alice", source=ALICE_URL)


@pytest.fixture
def bob():
    """Bob's profile bound to his document URL."""
    return Profile(title="Bob's log", nick="bob", source=BOB_URL)


@pytest.fixture
def carol():
    return Profile(title="Carol", nick="carol", source=CAROL_URL)


@pytest.fixture
def sample_document():
    return SAMPLE_DOCUMENT


@pytest.fixture
def bob_document():
    return BOB_DOCUMENT


@pytest.fixture
def make_post():
    """Factory for posts: make_post("2025-01-01T00:00:00+00:00", "text", reply_to=...)."""
    def _make(post_id, content="", **fields):
        return Post(id=post_id, content=content, **fields)
    return _make


@pytest.fixture
def fast_settings():
    """Settings with zero backoff so retry tests do not sleep."""
    return Settings(
        fetch_timeout=5.0,
        max_retries=2,
        retry_base_delay=0.0,
        retry_max_delay=0.0,
        user_agent="orgsocial-tests",
    )
