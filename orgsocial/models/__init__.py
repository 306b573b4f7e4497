"""
Data models for orgsocial: Profile, Post, PostType.
"""

from orgsocial.models.social_models import Post, PostType, Profile

__all__ = ["Post", "PostType", "Profile"]
