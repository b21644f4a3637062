"""
Repository and package domain objects for imageprune.

These mirror the GitHub REST API shapes the pipeline needs, reduced to
immutable values. Data flows forward by construction: a PackageVersion
plus its package and registry context becomes a ResolvedVersion.
"""

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from ..utils import parse_timestamp, strip_uri_template


@dataclass(frozen=True)
class GitHubRepository:
    """The repository whose images are being pruned."""
    owner: str
    name: str
    full_name: str
    node_id: str
    owner_url: str
    branches_url: str
    tags_url: str
    pulls_url: str

    @classmethod
    def from_api_response(cls, data: Dict[str, Any]) -> 'GitHubRepository':
        """Create from a GET /repos/{owner}/{repo} response."""
        owner = data.get('owner') or {}
        return cls(
            owner=owner.get('login', ''),
            name=data.get('name', ''),
            full_name=data.get('full_name', ''),
            node_id=data.get('node_id', ''),
            owner_url=strip_uri_template(owner.get('url', '')),
            branches_url=strip_uri_template(data.get('branches_url', '')),
            tags_url=strip_uri_template(data.get('tags_url', '')),
            pulls_url=strip_uri_template(data.get('pulls_url', '')),
        )


@dataclass(frozen=True)
class PackageVersion:
    """One stored image version of a container package."""
    id: int
    name: str                  # content reference, usually a digest
    tags: Tuple[str, ...]
    updated_at: Optional[datetime]  # None when the API sent no usable timestamp
    url: str                   # API endpoint, also the deletion handle
    html_url: str = ""

    @classmethod
    def from_api_response(cls, data: Dict[str, Any]) -> 'PackageVersion':
        """
        Create from a GET {package_url}/versions item.

        A missing or unparseable timestamp is kept as None so the version
        is still evaluated (and kept) on its own.
        """
        container = (data.get('metadata') or {}).get('container') or {}
        updated_at = parse_timestamp(data.get('updated_at') or data.get('created_at'))
        return cls(
            id=data.get('id', 0),
            name=data.get('name', ''),
            tags=tuple(container.get('tags') or ()),
            updated_at=updated_at,
            url=data.get('url', ''),
            html_url=data.get('html_url', ''),
        )


@dataclass(frozen=True)
class Package:
    """A container package owned by the repository."""
    name: str
    owner: str
    url: str
    repository_node_id: Optional[str] = None
    versions: Tuple[PackageVersion, ...] = ()

    @classmethod
    def from_api_response(cls, data: Dict[str, Any]) -> 'Package':
        """Create from a GET {owner_url}/packages item."""
        owner = data.get('owner') or {}
        repository = data.get('repository') or {}
        return cls(
            name=data.get('name', ''),
            owner=owner.get('login', ''),
            url=data.get('url', ''),
            repository_node_id=repository.get('node_id'),
        )

    def belongs_to(self, repo: GitHubRepository) -> bool:
        return self.repository_node_id is not None and self.repository_node_id == repo.node_id

    def with_versions(self, versions) -> 'Package':
        return replace(self, versions=tuple(versions))


@dataclass(frozen=True)
class ResolvedVersion:
    """A package version placed in its registry context."""
    version: PackageVersion
    package_name: str
    owner: str
    registry_host: str

    @property
    def repository(self) -> str:
        """Registry repository path, e.g. 'octo/app'."""
        return f"{self.owner}/{self.package_name}"

    @property
    def image(self) -> str:
        return f"{self.registry_host}/{self.repository}"

    @property
    def image_ref(self) -> str:
        return f"{self.image}@{self.version.name}"

    @property
    def display_image(self) -> str:
        if self.version.tags:
            return f"{self.image}:{self.version.tags[0]}"
        return self.image_ref
