"""
Container registry client infrastructure for imageprune.

Speaks the Docker Registry v2 / OCI distribution read API:
- GET /v2/<repository>/manifests/<reference>
- GET /v2/<repository>/blobs/<digest>

ghcr.io accepts the GitHub token itself, base64-encoded, as a bearer
token, so the registry shares credentials with the GitHub client.
"""

import base64
import hashlib
import json
import logging
from typing import Any, Dict, Iterable, Optional, Tuple

import httpx

from ..domain.manifest import MANIFEST_MEDIA_TYPES
from ..exit_codes import RegistryError

logger = logging.getLogger(__name__)

DEFAULT_REGISTRY_URL = "https://ghcr.io"


def registry_token(token: str) -> str:
    """Encode a GitHub token the way ghcr.io expects it."""
    return base64.b64encode(token.encode()).decode()


class RegistryClient:
    """
    Async client for manifest and blob reads.

    Every non-2xx response or unparseable body raises RegistryError.
    Nothing is retried here beyond the transport's connection retries.
    """

    def __init__(
        self,
        token: str,
        registry_url: str = DEFAULT_REGISTRY_URL,
        timeout: float = 30.0,
        retries: int = 3,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        log: Optional[logging.Logger] = None,
    ):
        self.registry_url = registry_url.rstrip('/')
        self.log = log or logger
        self._client = httpx.AsyncClient(
            base_url=self.registry_url,
            headers={
                'Authorization': f'Bearer {registry_token(token)}',
                'User-Agent': 'imageprune',
            },
            timeout=timeout,
            # Blob reads redirect to storage
            follow_redirects=True,
            transport=transport or httpx.AsyncHTTPTransport(retries=retries),
        )

    @property
    def host(self) -> str:
        """Registry host used in image references, e.g. 'ghcr.io'."""
        return httpx.URL(self.registry_url).netloc.decode()

    async def __aenter__(self) -> 'RegistryClient':
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _get(self, path: str, accept: Iterable[str]) -> httpx.Response:
        try:
            response = await self._client.get(path, headers={'Accept': ', '.join(accept)})
        except httpx.HTTPError as e:
            raise RegistryError(f"GET {path} failed: {e}") from e
        self.log.debug(f"GET {response.request.url} -> {response.status_code}")
        if response.is_error:
            raise RegistryError(f"GET {path} failed: {response.status_code}", response.status_code)
        return response

    @staticmethod
    def _json(response: httpx.Response) -> Dict[str, Any]:
        try:
            body = response.json()
        except (json.JSONDecodeError, ValueError) as e:
            raise RegistryError(f"Malformed JSON from {response.request.url}: {e}") from e
        if not isinstance(body, dict):
            raise RegistryError(f"Expected a JSON object from {response.request.url}")
        return body

    async def get_manifest(
        self,
        repository: str,
        reference: str,
    ) -> Tuple[Dict[str, Any], Optional[str], str]:
        """
        Fetch a manifest or manifest index.

        Args:
            repository: Registry repository path, e.g. 'octo/app'
            reference: Tag or digest

        Returns:
            (document, media_type, digest). The media type comes from the
            document, falling back to the Content-Type header; None if
            neither says. The digest comes from Docker-Content-Digest,
            then the reference if it is a digest, then the body hash.
        """
        response = await self._get(f"/v2/{repository}/manifests/{reference}", MANIFEST_MEDIA_TYPES)
        document = self._json(response)

        media_type = document.get('mediaType')
        if not media_type:
            content_type = response.headers.get('Content-Type', '')
            media_type = content_type.split(';')[0].strip() or None

        digest = response.headers.get('Docker-Content-Digest')
        if not digest:
            if reference.startswith('sha256:'):
                digest = reference
            else:
                digest = f"sha256:{hashlib.sha256(response.content).hexdigest()}"

        return document, media_type, digest

    async def get_blob(
        self,
        repository: str,
        digest: str,
        accept: Iterable[str],
    ) -> Dict[str, Any]:
        """Fetch a JSON blob (e.g. an image config) by digest."""
        response = await self._get(f"/v2/{repository}/blobs/{digest}", accept)
        return self._json(response)
