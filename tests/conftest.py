"""
Shared fixtures: in-memory GitHub and registry APIs served through
httpx.MockTransport, and a helper to run a coroutine with a PruneContext
wired to them.
"""

import asyncio
import hashlib
import logging
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest

from imageprune.domain.manifest import OCI_CONFIG, OCI_INDEX, OCI_MANIFEST
from imageprune.infra import GitHubClient, RegistryClient
from imageprune.services import PruneContext

API_URL = "https://api.github.test"
REGISTRY_URL = "https://registry.test"
TOKEN = "test-token"


class FakeAPI:
    """Routes requests by (method, path) and records every request."""

    def __init__(self):
        self._routes: Dict[tuple, List[Any]] = {}
        self.requests: List[httpx.Request] = []

    def add(self, method: str, path: str, status: int = 200, json_body: Any = None,
            headers: Optional[Dict[str, str]] = None, content: Optional[bytes] = None) -> None:
        """Queue a canned response. The last queued response repeats."""
        self._routes.setdefault((method, path), []).append(
            {'status': status, 'json': json_body, 'headers': headers or {}, 'content': content}
        )

    def add_handler(self, method: str, path: str, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self._routes.setdefault((method, path), []).append(handler)

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self._routes.get((request.method, request.url.path))
        if not queue:
            return httpx.Response(404, json={'message': 'Not Found'})
        item = queue[0] if len(queue) == 1 else queue.pop(0)
        if callable(item):
            return item(request)
        if item['content'] is not None:
            return httpx.Response(item['status'], content=item['content'], headers=item['headers'])
        return httpx.Response(item['status'], json=item['json'], headers=item['headers'])

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def calls(self, method: Optional[str] = None, path: Optional[str] = None) -> List[httpx.Request]:
        return [
            r for r in self.requests
            if (method is None or r.method == method) and (path is None or r.url.path == path)
        ]


class FakeGitHub(FakeAPI):
    """GitHub REST API fake with paginated list helpers."""

    def add_list(self, path: str, items: List[Dict[str, Any]], page_size: int = 100) -> None:
        """Serve items over as many pages as page_size needs, linked by Link headers."""
        pages = [items[i:i + page_size] for i in range(0, len(items), page_size)] or [[]]

        def handler(request: httpx.Request) -> httpx.Response:
            page = int(request.url.params.get('page', '1'))
            headers = {}
            if page < len(pages):
                headers['Link'] = f'<{API_URL}{path}?page={page + 1}>; rel="next"'
            return httpx.Response(200, json=pages[page - 1], headers=headers)

        self.add_handler('GET', path, handler)

    def add_repository(self, owner: str = 'octo', name: str = 'app', node_id: str = 'R_app') -> Dict[str, Any]:
        data = {
            'name': name,
            'full_name': f'{owner}/{name}',
            'node_id': node_id,
            'owner': {'login': owner, 'url': f'{API_URL}/users/{owner}'},
            'branches_url': f'{API_URL}/repos/{owner}/{name}/branches{{/branch}}',
            'tags_url': f'{API_URL}/repos/{owner}/{name}/tags',
            'pulls_url': f'{API_URL}/repos/{owner}/{name}/pulls{{/number}}',
        }
        self.add('GET', f'/repos/{owner}/{name}', json_body=data)
        return data

    def add_refs(self, owner: str = 'octo', name: str = 'app', branches=(), tags=(), pulls=()) -> None:
        self.add_list(f'/repos/{owner}/{name}/branches', [{'name': b} for b in branches])
        self.add_list(f'/repos/{owner}/{name}/tags', [{'name': t} for t in tags])
        self.add_list(f'/repos/{owner}/{name}/pulls', [{'number': n, 'state': 'open'} for n in pulls])

    def add_packages(self, owner: str, packages: List[Dict[str, Any]]) -> None:
        """Serve the owner's container package listing."""
        self.add_list(f'/users/{owner}/packages', packages)

    def add_versions(self, owner: str, package: str, versions: List[Dict[str, Any]]) -> None:
        self.add_list(f'/users/{owner}/packages/container/{package}/versions', versions)


def package_item(name: str, owner: str = 'octo', node_id: Optional[str] = 'R_app') -> Dict[str, Any]:
    return {
        'id': abs(hash(name)) % 10000,
        'name': name,
        'package_type': 'container',
        'owner': {'login': owner},
        'url': f'{API_URL}/users/{owner}/packages/container/{name}',
        'repository': {'node_id': node_id} if node_id else None,
    }


def version_item(version_id: int, digest: str, updated_at: Optional[str], tags=(), owner: str = 'octo',
                 package: str = 'app') -> Dict[str, Any]:
    return {
        'id': version_id,
        'name': digest,
        'url': f'{API_URL}/users/{owner}/packages/container/{package}/versions/{version_id}',
        'html_url': f'https://github.test/users/{owner}/packages/container/{package}/{version_id}',
        'updated_at': updated_at,
        'metadata': {'package_type': 'container', 'container': {'tags': list(tags)}},
    }


class FakeRegistry(FakeAPI):
    """Registry API fake that builds manifests, indices and config blobs."""

    def __init__(self):
        super().__init__()
        self._counter = 0

    def _digest(self, seed: str) -> str:
        self._counter += 1
        return 'sha256:' + hashlib.sha256(f'{seed}-{self._counter}'.encode()).hexdigest()

    def add_manifest_document(self, repository: str, reference: str, document: Dict[str, Any],
                              digest: Optional[str] = None) -> None:
        headers = {'Docker-Content-Digest': digest} if digest else {}
        self.add('GET', f'/v2/{repository}/manifests/{reference}', json_body=document, headers=headers)

    def add_image(self, repository: str = 'octo/app', label: Optional[str] = None,
                  reference: Optional[str] = None, media_type: str = OCI_MANIFEST) -> str:
        """Add a leaf manifest and its config; returns the manifest digest."""
        digest = reference if reference and reference.startswith('sha256:') else self._digest('manifest')
        config_digest = self._digest('config')
        labels = {'org.opencontainers.image.version': label} if label is not None else {}
        document = {
            'schemaVersion': 2,
            'mediaType': media_type,
            'config': {'mediaType': OCI_CONFIG, 'digest': config_digest, 'size': 100},
            'layers': [],
        }
        self.add_manifest_document(repository, digest, document, digest)
        if reference and reference != digest:
            self.add_manifest_document(repository, reference, document, digest)
        self.add('GET', f'/v2/{repository}/blobs/{config_digest}', json_body={
            'created': '2024-01-01T00:00:00.123456789Z',
            'config': {'Labels': labels},
        })
        return digest

    def add_index(self, repository: str, children: List[str], reference: Optional[str] = None,
                  media_type: str = OCI_INDEX, attestations: List[str] = ()) -> str:
        """Add an index over child manifest digests; returns the index digest."""
        digest = reference if reference and reference.startswith('sha256:') else self._digest('index')
        entries = [
            {'mediaType': OCI_MANIFEST, 'digest': child, 'size': 500,
             'platform': {'os': 'linux', 'architecture': f'arch{i}'}}
            for i, child in enumerate(children)
        ]
        entries += [
            {'mediaType': OCI_MANIFEST, 'digest': att, 'size': 500,
             'platform': {'os': 'unknown', 'architecture': 'unknown'},
             'annotations': {'vnd.docker.reference.type': 'attestation-manifest'}}
            for att in attestations
        ]
        document = {'schemaVersion': 2, 'mediaType': media_type, 'manifests': entries}
        self.add_manifest_document(repository, digest, document, digest)
        if reference and reference != digest:
            self.add_manifest_document(repository, reference, document, digest)
        return digest


@pytest.fixture
def github_api():
    return FakeGitHub()


@pytest.fixture
def registry_api():
    return FakeRegistry()


@pytest.fixture
def run_with_context(github_api, registry_api):
    """Run func(context) inside an event loop with clients on the fakes."""

    def run(func, jobs: int = 1, dry_run: bool = False):
        async def main():
            github = GitHubClient(TOKEN, api_url=API_URL, transport=github_api.transport)
            registry = RegistryClient(TOKEN, registry_url=REGISTRY_URL, transport=registry_api.transport)
            async with github, registry:
                context = PruneContext(github=github, registry=registry, jobs=jobs, dry_run=dry_run)
                return await func(context)

        return asyncio.run(main())

    return run


@pytest.fixture(autouse=True)
def reset_imageprune_logger():
    """configure_logging() mutates the package logger; undo it after each test."""
    yield
    logger = logging.getLogger("imageprune")
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True
