"""
Manifest resolution for imageprune.

Resolves a version's content reference to the image configs of all its
platform variants, expanding manifest indices recursively.
"""

import asyncio
from typing import Any, Dict, List, Optional, Set

from ..domain.manifest import (
    CONFIG_MEDIA_TYPES,
    INDEX_MEDIA_TYPES,
    LEAF_MEDIA_TYPES,
    ImageConfig,
    Manifest,
    ManifestDescriptor,
)
from ..exit_codes import ManifestError
from ..utils import parse_timestamp
from .context import PruneContext

# buildx stores provenance/SBOM manifests in the index next to platforms
ATTESTATION_ANNOTATION = 'vnd.docker.reference.type'
ATTESTATION_TYPE = 'attestation-manifest'


def _is_attestation(entry: Dict[str, Any]) -> bool:
    annotations = entry.get('annotations') or {}
    return annotations.get(ATTESTATION_ANNOTATION) == ATTESTATION_TYPE


class ManifestResolver:
    """
    Resolves manifests to image configs.

    Every registry fetch holds one slot of a semaphore sized to the run's
    concurrency limit. A slot is held for a single request only, so
    nested child resolution never waits on its own parent.

    Errors are not retried: non-2xx responses, malformed JSON, unknown
    media types and missing config digests all raise to the caller.

    Example:
        resolver = ManifestResolver(context)
        for config in await resolver.resolve("octo/app", "sha256:..."):
            print(config.version_label)
    """

    def __init__(self, context: PruneContext):
        self.registry = context.registry
        self.log = context.get_logger("manifests")
        self._fetch_slots = asyncio.Semaphore(max(1, context.jobs))

    async def resolve(self, repository: str, reference: str) -> List[ImageConfig]:
        """
        Resolve a tag or digest to the image configs of all its variants.

        Args:
            repository: Registry repository path, e.g. 'octo/app'
            reference: Tag or digest of the manifest to start from

        Returns:
            One ImageConfig per leaf manifest, in index order

        Raises:
            RegistryError: a fetch failed or returned malformed JSON
            ManifestError: a manifest has an unexpected shape
        """
        return await self._resolve(repository, reference, None, set())

    async def _resolve(
        self,
        repository: str,
        reference: str,
        parent: Optional[Manifest],
        seen: Set[str],
    ) -> List[ImageConfig]:
        if reference in seen:
            self.log.debug(f"Already resolved {repository}@{reference}")
            return []
        seen.add(reference)

        async with self._fetch_slots:
            document, media_type, digest = await self.registry.get_manifest(repository, reference)

        if digest != reference:
            if digest in seen:
                self.log.debug(f"Already resolved {repository}@{digest}")
                return []
            seen.add(digest)

        if media_type in LEAF_MEDIA_TYPES:
            return [await self._resolve_leaf(repository, document, media_type, digest, parent)]

        if media_type in INDEX_MEDIA_TYPES:
            return await self._resolve_index(repository, document, media_type, digest, parent, seen)

        raise ManifestError(f"Unknown manifest media type {media_type!r} for {repository}@{reference}")

    async def _resolve_leaf(
        self,
        repository: str,
        document: Dict[str, Any],
        media_type: str,
        digest: str,
        parent: Optional[Manifest],
    ) -> ImageConfig:
        config_digest = (document.get('config') or {}).get('digest')
        if not config_digest:
            raise ManifestError(f"Manifest {repository}@{digest} has no config digest")

        manifest = Manifest(
            digest=digest,
            media_type=media_type,
            config_digest=config_digest,
            parent=parent,
        )

        self.log.debug(f"Getting image config for {repository}@{digest}")
        async with self._fetch_slots:
            blob = await self.registry.get_blob(repository, config_digest, CONFIG_MEDIA_TYPES)

        labels = (blob.get('config') or {}).get('Labels') or {}
        if not isinstance(labels, dict):
            raise ManifestError(f"Image config {repository}@{config_digest} has malformed labels")

        return ImageConfig.create(
            labels=labels,
            manifest=manifest,
            created_at=parse_timestamp(blob.get('created')),
        )

    async def _resolve_index(
        self,
        repository: str,
        document: Dict[str, Any],
        media_type: str,
        digest: str,
        parent: Optional[Manifest],
        seen: Set[str],
    ) -> List[ImageConfig]:
        entries = []
        for entry in document.get('manifests') or []:
            if not entry.get('digest'):
                raise ManifestError(f"Index {repository}@{digest} has an entry without a digest")
            if _is_attestation(entry):
                self.log.debug(f"Skipping attestation manifest {entry['digest']} in {repository}@{digest}")
                continue
            entries.append(entry)

        manifest = Manifest(
            digest=digest,
            media_type=media_type,
            children=tuple(ManifestDescriptor.from_dict(entry) for entry in entries),
            parent=parent,
        )

        results = await asyncio.gather(*(
            self._resolve(repository, child.digest, manifest, seen)
            for child in manifest.children
        ))
        return [config for configs in results for config in configs]
