"""
Reference domain object for imageprune.

A Reference is a live branch, tag or open pull request name, sanitized
into the form used for container image tags and version labels.
"""

import re
from dataclasses import dataclass, field
from enum import Enum

# Same rule docker/metadata-action applies when turning refs into tags
_DISALLOWED = re.compile(r'[^a-zA-Z0-9._-]+')


def sanitize_tag(name: str) -> str:
    """
    Sanitize a reference name into a valid image tag.

    Every run of characters outside [A-Za-z0-9._-] becomes a single '-'.

    Example:
        >>> sanitize_tag("feature/new ui")
        'feature-new-ui'
    """
    return _DISALLOWED.sub('-', name)


class RefKind(Enum):
    """Where a reference came from."""
    BRANCH = "branch"
    TAG = "tag"
    PULL_REQUEST = "pull_request"


@dataclass(frozen=True)
class Reference:
    """
    A protected reference name.

    Equality and hashing use the sanitized name only: branches, tags and
    pull requests share one flat namespace.
    """
    name: str
    kind: RefKind = field(default=RefKind.BRANCH, compare=False)

    @classmethod
    def from_raw(cls, raw_name: str, kind: RefKind) -> 'Reference':
        return cls(name=sanitize_tag(raw_name), kind=kind)

    @classmethod
    def pull_request(cls, number: int) -> 'Reference':
        return cls.from_raw(f"pr-{number}", RefKind.PULL_REQUEST)

    def __str__(self) -> str:
        return self.name
