"""
Tests for the poll engine.

Covers option extraction, vote tallying (one vote per voter, earliest wins,
case-sensitive labels), percentages, and the ACTIVE/ENDED boundary.
"""

import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

ALICE_URL = "https://alice.example/social.org"
BOB_URL = "https://bob.example/social.org"
CAROL_URL = "https://carol.example/social.org"

POLL_ID = "2025-05-02T09:30:00+00:00"
POLL_END = "2025-05-09T09:30:00+00:00"
BEFORE_END = datetime(2025, 5, 5, tzinfo=timezone.utc)


@pytest.fixture
def poll_post(make_post):
    return make_post(
        POLL_ID,
        "Which colour?\n- [ ] Red\n- [ ] Blue\n- [ ] Green",
        poll_end=POLL_END,
        source=ALICE_URL,
    )


@pytest.fixture
def vote(make_post):
    def _vote(post_id, option, source, reply_to=f"{ALICE_URL}#{POLL_ID}", content=""):
        return make_post(post_id, content, reply_to=reply_to, poll_option=option, source=source)
    return _vote


class TestExtraction:
    """Poll decoding from a post."""

    def test_options_in_document_order(self, poll_post):
        from orgsocial.poll import PollStatus, extract_poll

        poll = extract_poll(poll_post, [], now=BEFORE_END)

        assert [o.label for o in poll.options] == ["Red", "Blue", "Green"]
        assert poll.post_id == POLL_ID
        assert poll.poll_end == POLL_END
        assert poll.status is PollStatus.ACTIVE

    def test_no_poll_end_returns_none(self, make_post):
        from orgsocial.poll import extract_poll

        post = make_post(POLL_ID, "- [ ] Red\n- [ ] Blue")

        assert extract_poll(post, []) is None

    def test_no_options_returns_none(self, make_post):
        from orgsocial.poll import extract_poll

        post = make_post(POLL_ID, "No checkboxes", poll_end=POLL_END)

        assert extract_poll(post, []) is None

    def test_unparseable_deadline_returns_none_and_logs(self, make_post):
        from orgsocial.poll import extract_poll

        post = make_post(POLL_ID, "- [ ] Red", poll_end="next tuesday")

        with patch("orgsocial.poll.logger") as mock_logger:
            assert extract_poll(post, []) is None

        mock_logger.warning.assert_called_once()
        assert mock_logger.warning.call_args.args[0] == "poll_end_unparseable"


class TestTally:
    """Vote counting."""

    def test_counts_and_percentages(self, poll_post, vote):
        from orgsocial.poll import extract_poll

        votes = [
            vote("2025-05-03T10:00:00+00:00", "Red", BOB_URL),
            vote("2025-05-03T11:00:00+00:00", "Red", CAROL_URL),
            vote("2025-05-03T12:00:00+00:00", "Blue", "https://dave.example/social.org"),
        ]

        poll = extract_poll(poll_post, [poll_post, *votes], now=BEFORE_END)

        assert [o.vote_count for o in poll.options] == [2, 1, 0]
        assert poll.total_votes == 3
        assert poll.options[0].percentage == pytest.approx(200 / 3)
        assert poll.options[1].percentage == pytest.approx(100 / 3)
        assert poll.options[2].percentage == 0.0

    def test_zero_votes_zero_percent(self, poll_post):
        """0 of 0 votes is 0%, not NaN or a division error."""
        from orgsocial.poll import extract_poll

        poll = extract_poll(poll_post, [poll_post], now=BEFORE_END)

        assert poll.total_votes == 0
        assert all(o.percentage == 0.0 for o in poll.options)

    def test_labels_are_case_sensitive(self, poll_post, vote):
        from orgsocial.poll import extract_poll

        poll = extract_poll(poll_post, [vote("2025-05-03T10:00:00+00:00", "red", BOB_URL)], now=BEFORE_END)

        assert poll.total_votes == 0

    def test_earliest_vote_per_voter_wins(self, poll_post, vote):
        """A voter who changes their mind keeps their first vote."""
        from orgsocial.poll import extract_poll

        votes = [
            vote("2025-05-04T10:00:00+00:00", "Blue", BOB_URL),
            vote("2025-05-03T10:00:00+00:00", "Red", BOB_URL),
        ]

        poll = extract_poll(poll_post, votes, now=BEFORE_END)

        assert [o.vote_count for o in poll.options] == [1, 0, 0]

    def test_votes_for_other_posts_ignored(self, poll_post, vote):
        from orgsocial.poll import extract_poll

        votes = [
            vote("2025-05-03T10:00:00+00:00", "Red", BOB_URL, reply_to=f"{ALICE_URL}#2025-01-01T00:00:00+00:00"),
            vote("2025-05-03T11:00:00+00:00", "Red", CAROL_URL, reply_to=f"{BOB_URL}#{POLL_ID}"),
        ]

        poll = extract_poll(poll_post, votes, now=BEFORE_END)

        assert poll.total_votes == 0

    def test_bare_id_reply_counts(self, poll_post, vote):
        from orgsocial.poll import extract_poll

        poll = extract_poll(poll_post, [vote("2025-05-03T10:00:00+00:00", "Green", BOB_URL, reply_to=POLL_ID)], now=BEFORE_END)

        assert poll.options[2].vote_count == 1

    def test_custom_voter_identity(self, poll_post, vote):
        """voter_of lets callers merge votes from one person's several documents."""
        from orgsocial.poll import extract_poll

        votes = [
            vote("2025-05-03T10:00:00+00:00", "Red", BOB_URL),
            vote("2025-05-03T11:00:00+00:00", "Blue", "https://bob-mirror.example/social.org"),
        ]

        poll = extract_poll(poll_post, votes, now=BEFORE_END, voter_of=lambda p: "bob")

        assert poll.total_votes == 1
        assert poll.options[0].vote_count == 1

    def test_recomputed_on_each_call(self, poll_post, vote):
        from orgsocial.poll import extract_poll

        posts = [poll_post]
        first = extract_poll(poll_post, posts, now=BEFORE_END)
        posts.append(vote("2025-05-03T10:00:00+00:00", "Red", BOB_URL))
        second = extract_poll(poll_post, posts, now=BEFORE_END)

        assert first.total_votes == 0
        assert second.total_votes == 1


class TestStatus:
    """ACTIVE until strictly after poll_end."""

    def test_active_before_deadline(self, poll_post):
        from orgsocial.poll import PollStatus, extract_poll

        poll = extract_poll(poll_post, [], now=datetime(2025, 5, 9, 9, 29, 59, tzinfo=timezone.utc))

        assert poll.status is PollStatus.ACTIVE
        assert poll.is_active is True

    def test_active_exactly_at_deadline(self, poll_post):
        from orgsocial.poll import PollStatus, extract_poll

        poll = extract_poll(poll_post, [], now=datetime(2025, 5, 9, 9, 30, tzinfo=timezone.utc))

        assert poll.status is PollStatus.ACTIVE

    def test_ended_after_deadline(self, poll_post):
        from orgsocial.poll import PollStatus, extract_poll

        end = datetime(2025, 5, 9, 9, 30, tzinfo=timezone.utc)
        poll = extract_poll(poll_post, [], now=end + timedelta(seconds=1))

        assert poll.status is PollStatus.ENDED
        assert poll.is_active is False

    def test_deadline_offset_is_respected(self, make_post):
        """09:30+02:00 is 07:30 UTC."""
        from orgsocial.poll import PollStatus, extract_poll

        post = make_post(POLL_ID, "- [ ] A", poll_end="2025-05-09T09:30:00+02:00")

        poll = extract_poll(post, [], now=datetime(2025, 5, 9, 8, 0, tzinfo=timezone.utc))

        assert poll.status is PollStatus.ENDED

    def test_naive_now_is_utc(self, poll_post):
        from orgsocial.poll import PollStatus, extract_poll

        poll = extract_poll(poll_post, [], now=datetime(2025, 5, 9, 9, 30))

        assert poll.status is PollStatus.ACTIVE


class TestPresentation:
    """summary() and results()."""

    def test_summary_and_results(self, poll_post, vote):
        from orgsocial.poll import extract_poll

        poll = extract_poll(poll_post, [vote("2025-05-03T10:00:00+00:00", "Blue", BOB_URL)], now=BEFORE_END)

        assert poll.summary() == "Poll: 3 options, 1 vote (active)"
        assert poll.results() == [("Red", 0, 0.0), ("Blue", 1, 100.0), ("Green", 0, 0.0)]


class TestVoteReply:
    """create_vote_reply builds vote posts."""

    def test_simple_vote(self):
        from orgsocial.models.social_models import PostType
        from orgsocial.poll import create_vote_reply

        post = create_vote_reply(f"{ALICE_URL}#{POLL_ID}", "Red")

        assert post.reply_to == f"{ALICE_URL}#{POLL_ID}"
        assert post.poll_option == "Red"
        assert post.post_type is PostType.SIMPLE_POLL_VOTE
        assert post.reply_target_id == POLL_ID

    def test_vote_with_comment(self):
        from orgsocial.models.social_models import PostType
        from orgsocial.poll import create_vote_reply

        post = create_vote_reply(POLL_ID, "Blue", content="Blue is calmer")

        assert post.post_type is PostType.POLL_VOTE

    def test_empty_option_rejected(self):
        from orgsocial.poll import create_vote_reply

        with pytest.raises(ValueError):
            create_vote_reply(POLL_ID, "")
