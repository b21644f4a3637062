"""
Infrastructure layer for imageprune.

Contains abstractions for external systems:
- GitHubClient: GitHub REST API access
- RegistryClient: Container registry manifest/blob access

These provide clean interfaces that can be faked for testing.
"""

from .github_client import GitHubClient, RateLimitStatus
from .registry_client import RegistryClient

__all__ = [
    'GitHubClient',
    'RateLimitStatus',
    'RegistryClient',
]
