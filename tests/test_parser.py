"""
Tests for the org-social document parser.

Behavioral tests: header fields, post drawers, content extraction, and the
recovery rules for malformed fields and id-less posts.
"""

from unittest.mock import patch

ALICE_URL = "https://alice.example/social.org"


class TestProfileParsing:
    """Header fields before * Posts."""

    def test_header_fields(self, sample_document):
        from orgsocial.parser import parse_document

        profile, _ = parse_document(sample_document, source=ALICE_URL)

        assert profile.title == "Alice's journal"
        assert profile.nick == "alice"
        assert profile.description == "Notes from the garden"
        assert profile.avatar == "https://alice.example/avatar.png"
        assert profile.links == ("https://alice.example",)
        assert profile.contacts == ("mailto:alice@alice.example",)
        assert profile.source == ALICE_URL

    def test_follows_with_and_without_nick(self, sample_document):
        from orgsocial.parser import parse_document

        profile, _ = parse_document(sample_document)

        assert profile.follows == (
            ("bob", "https://bob.example/social.org"),
            ("", "https://carol.example/social.org"),
        )

    def test_empty_value_is_absent(self):
        from orgsocial.parser import parse_document

        profile, _ = parse_document("#+TITLE: T\n#+NICK: n\n#+DESCRIPTION:\n* Posts\n")

        assert profile.description is None

    def test_malformed_field_is_skipped_and_logged(self):
        """A #+ line without a colon is dropped; the rest of the header survives."""
        from orgsocial.parser import parse_document

        text = "#+TITLE: T\n#+NICK alice\n#+FOLLOW: bob\n#+AVATAR: https://a/p.png\n* Posts\n"

        with patch("orgsocial.parser.logger") as mock_logger:
            profile, posts = parse_document(text)

        assert profile.title == "T"
        assert profile.nick == ""
        assert profile.follows == ()
        assert profile.avatar == "https://a/p.png"
        assert posts == []

        events = [c.args[0] for c in mock_logger.warning.call_args_list]
        assert events == ["profile_field_malformed", "profile_field_malformed"]

    def test_parse_header_field_raises_parse_error(self):
        import pytest
        from orgsocial.parser import ParseError, parse_header_field

        with pytest.raises(ParseError):
            parse_header_field("#+NICK alice", 3)

        assert parse_header_field("plain prose") is None
        assert parse_header_field("#+nick: alice") == ("NICK", "alice")

    def test_parse_error_is_value_error(self):
        from orgsocial.parser import ParseError

        assert issubclass(ParseError, ValueError)


class TestPostParsing:
    """Post records after * Posts."""

    def test_post_count_and_order(self, sample_document):
        from orgsocial.parser import parse_document

        _, posts = parse_document(sample_document, source=ALICE_URL)

        assert [p.id for p in posts] == [
            "2025-05-01T10:00:00+00:00",
            "2025-05-02T09:30:00+0200",
            "2025-05-03T08:00:00+00:00",
        ]
        assert all(p.source == ALICE_URL for p in posts)

    def test_properties(self, sample_document):
        from orgsocial.parser import parse_document

        _, posts = parse_document(sample_document)
        first = posts[0]

        assert first.lang == "en"
        assert first.tags == ["garden", "spring"]
        assert first.client == "org-social.el"
        assert first.reply_to is None

    def test_content_strips_leading_blank_and_trailing_newline(self, sample_document):
        from orgsocial.parser import parse_document

        _, posts = parse_document(sample_document)

        assert posts[0].content == "First tomatoes of the year, *finally*."

    def test_poll_post_is_parsed_as_poll(self, sample_document):
        from orgsocial.models.social_models import PostType
        from orgsocial.parser import parse_document

        _, posts = parse_document(sample_document)
        poll = posts[1]

        assert poll.poll_end == "2025-05-09T09:30:00+02:00"
        assert poll.post_type is PostType.POLL
        assert poll.content.splitlines()[-1] == "- [ ] Greenhouse"

    def test_drawer_on_heading_line_and_empty_property(self, sample_document):
        """':PROPERTIES:' may sit on the ** line; ':MOOD:' with no value is None."""
        from orgsocial.models.social_models import PostType
        from orgsocial.parser import parse_document
        from orgsocial.tokenizer import TokenKind

        _, posts = parse_document(sample_document)
        reply = posts[2]

        assert reply.reply_to == "https://bob.example/social.org#2025-05-02T20:00:00+00:00"
        assert reply.mood is None
        assert reply.post_type is PostType.REPLY
        assert TokenKind.MENTION in [t.kind for t in reply.tokens]

    def test_post_without_id_is_skipped(self):
        from orgsocial.parser import parse_document

        text = (
            "* Posts\n"
            "**\n:PROPERTIES:\n:LANG: en\n:END:\n\nno id\n"
            "**\n:PROPERTIES:\n:ID: 2025-01-01T00:00:00+00:00\n:END:\n\nkept\n"
        )

        with patch("orgsocial.parser.logger") as mock_logger:
            _, posts = parse_document(text)

        assert [p.content for p in posts] == ["kept"]
        mock_logger.warning.assert_called_once()
        assert mock_logger.warning.call_args.args[0] == "post_id_missing"

    def test_auto_parse_flag(self, sample_document):
        from orgsocial.parser import parse_document

        _, posts = parse_document(sample_document, auto_parse=False)

        assert all(p.tokens == [] and p.blocks == [] for p in posts)

    def test_document_without_posts(self):
        from orgsocial.parser import parse_document

        profile, posts = parse_document("#+TITLE: Empty\n#+NICK: e\n")

        assert profile.nick == "e"
        assert posts == []


class TestSerialization:
    """serialize_document writes the same format back."""

    def test_serialized_document_parses_back(self, sample_document):
        from orgsocial.parser import parse_document, serialize_document

        profile, posts = parse_document(sample_document)

        again_profile, again_posts = parse_document(serialize_document(profile, posts))

        assert again_profile == profile
        assert again_profile.follows == profile.follows
        assert [(p.id, p.content, p.reply_to, p.poll_end, p.tags) for p in again_posts] == [
            (p.id, p.content, p.reply_to, p.poll_end, p.tags) for p in posts
        ]

    def test_serialize_profile_only(self):
        from orgsocial.models.social_models import Profile
        from orgsocial.parser import serialize_document

        text = serialize_document(Profile(title="T", nick="n"), [])

        assert text == "#+TITLE: T\n#+NICK: n\n\n* Posts"
