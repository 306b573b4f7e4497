"""
orgsocial: parsing and conversation aggregation for Org-social feeds.

An Org-social participant publishes one plain-text org-mode document holding
a profile header and an append-only list of timestamped posts. This package
turns those documents into structured post content (tokens and blocks,
including polls), a merged chronological feed, reply threads, and a
notification stream for one user.
"""

__version__ = "0.3.0"
