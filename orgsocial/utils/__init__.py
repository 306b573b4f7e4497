"""
Shared utilities for orgsocial.

- logging_config: structlog JSON logging setup
- errors: retry with exponential backoff for the fetch layer
- timestamps: post id / poll deadline parsing
"""
