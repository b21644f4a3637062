"""
Manifest domain objects for imageprune.

A version's manifest tree is either a single leaf manifest pointing to an
image config blob, or an index whose children are per-platform manifests.
"""

from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

DOCKER_MANIFEST = 'application/vnd.docker.distribution.manifest.v2+json'
OCI_MANIFEST = 'application/vnd.oci.image.manifest.v1+json'
DOCKER_MANIFEST_LIST = 'application/vnd.docker.distribution.manifest.list.v2+json'
OCI_INDEX = 'application/vnd.oci.image.index.v1+json'

DOCKER_CONFIG = 'application/vnd.docker.container.image.v1+json'
OCI_CONFIG = 'application/vnd.oci.image.config.v1+json'

LEAF_MEDIA_TYPES = (DOCKER_MANIFEST, OCI_MANIFEST)
INDEX_MEDIA_TYPES = (DOCKER_MANIFEST_LIST, OCI_INDEX)
MANIFEST_MEDIA_TYPES = LEAF_MEDIA_TYPES + INDEX_MEDIA_TYPES
CONFIG_MEDIA_TYPES = (DOCKER_CONFIG, OCI_CONFIG)

VERSION_LABEL = 'org.opencontainers.image.version'


@dataclass(frozen=True)
class ManifestDescriptor:
    """An entry of an index's manifests list."""
    digest: str
    media_type: Optional[str] = None
    platform: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ManifestDescriptor':
        platform = data.get('platform') or {}
        platform_str = None
        if platform:
            parts = [platform.get('os'), platform.get('architecture'), platform.get('variant')]
            platform_str = '/'.join(p for p in parts if p)
        return cls(
            digest=data.get('digest', ''),
            media_type=data.get('mediaType'),
            platform=platform_str,
        )


@dataclass(frozen=True)
class Manifest:
    """A fetched manifest: a leaf (config_digest set) or an index (children set)."""
    digest: str
    media_type: str
    config_digest: Optional[str] = None
    children: Tuple[ManifestDescriptor, ...] = ()
    # Informational only, not owned
    parent: Optional['Manifest'] = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class ImageConfig:
    """The config blob of a leaf manifest."""
    labels: Mapping[str, str]
    manifest: Manifest
    created_at: Optional[datetime] = None

    @classmethod
    def create(
        cls,
        labels: Optional[Dict[str, str]],
        manifest: Manifest,
        created_at: Optional[datetime] = None,
    ) -> 'ImageConfig':
        return cls(
            labels=MappingProxyType(dict(labels or {})),
            manifest=manifest,
            created_at=created_at,
        )

    @property
    def version_label(self) -> Optional[str]:
        return self.labels.get(VERSION_LABEL)
