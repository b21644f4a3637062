"""Tests for ManifestResolver."""

import json

import pytest

from imageprune.domain.manifest import DOCKER_CONFIG, DOCKER_MANIFEST, DOCKER_MANIFEST_LIST, OCI_INDEX
from imageprune.exit_codes import ManifestError, RegistryError
from imageprune.services import ManifestResolver


def resolve(run_with_context, reference, repository='octo/app', jobs=1):
    return run_with_context(lambda ctx: ManifestResolver(ctx).resolve(repository, reference), jobs=jobs)


class TestLeafManifests:
    """Single-platform images."""

    def test_leaf_manifest(self, registry_api, run_with_context):
        digest = registry_api.add_image(label='main')

        configs = resolve(run_with_context, digest)

        assert len(configs) == 1
        config = configs[0]
        assert config.version_label == 'main'
        assert config.manifest.digest == digest
        assert config.manifest.parent is None
        assert config.created_at.year == 2024

    def test_leaf_by_tag(self, registry_api, run_with_context):
        digest = registry_api.add_image(label='v1.0.0', reference='v1.0.0')
        configs = resolve(run_with_context, 'v1.0.0')
        assert configs[0].manifest.digest == digest

    def test_docker_media_type_from_header(self, registry_api, run_with_context):
        document = {'schemaVersion': 2, 'config': {'mediaType': DOCKER_CONFIG, 'digest': 'sha256:cfg'}}
        registry_api.add('GET', '/v2/octo/app/manifests/sha256:leaf', content=json.dumps(document).encode(),
                         headers={'Content-Type': DOCKER_MANIFEST})
        registry_api.add('GET', '/v2/octo/app/blobs/sha256:cfg', json_body={'config': {'Labels': None}})

        configs = resolve(run_with_context, 'sha256:leaf')

        assert configs[0].manifest.media_type == DOCKER_MANIFEST
        assert configs[0].version_label is None

    def test_missing_config_digest(self, registry_api, run_with_context):
        registry_api.add_manifest_document('octo/app', 'sha256:x', {
            'mediaType': 'application/vnd.oci.image.manifest.v1+json', 'config': {},
        })
        with pytest.raises(ManifestError, match='no config digest'):
            resolve(run_with_context, 'sha256:x')

    def test_malformed_labels(self, registry_api, run_with_context):
        registry_api.add_manifest_document('octo/app', 'sha256:x', {
            'mediaType': 'application/vnd.oci.image.manifest.v1+json',
            'config': {'digest': 'sha256:cfg'},
        })
        registry_api.add('GET', '/v2/octo/app/blobs/sha256:cfg', json_body={'config': {'Labels': ['a', 'b']}})
        with pytest.raises(ManifestError, match='malformed labels'):
            resolve(run_with_context, 'sha256:x')

    def test_unknown_media_type(self, registry_api, run_with_context):
        registry_api.add_manifest_document('octo/app', 'sha256:x', {
            'mediaType': 'application/vnd.example.unknown+json',
        })
        with pytest.raises(ManifestError, match='Unknown manifest media type'):
            resolve(run_with_context, 'sha256:x')

    def test_fetch_failure_propagates(self, registry_api, run_with_context):
        registry_api.add('GET', '/v2/octo/app/manifests/sha256:x', status=500, json_body={})
        with pytest.raises(RegistryError) as exc_info:
            resolve(run_with_context, 'sha256:x')
        assert exc_info.value.status_code == 500

    def test_missing_config_blob_propagates(self, registry_api, run_with_context):
        registry_api.add_manifest_document('octo/app', 'sha256:x', {
            'mediaType': 'application/vnd.oci.image.manifest.v1+json',
            'config': {'digest': 'sha256:nowhere'},
        })
        with pytest.raises(RegistryError):
            resolve(run_with_context, 'sha256:x')


class TestIndices:
    """Multi-platform images."""

    def test_index_resolves_every_child(self, registry_api, run_with_context):
        amd64 = registry_api.add_image(label='main')
        arm64 = registry_api.add_image(label='feature-x')
        index = registry_api.add_index('octo/app', [amd64, arm64])

        configs = resolve(run_with_context, index, jobs=4)

        assert [c.manifest.digest for c in configs] == [amd64, arm64]
        assert [c.version_label for c in configs] == ['main', 'feature-x']
        for config in configs:
            assert config.manifest.parent.digest == index
            assert config.manifest.parent.media_type == OCI_INDEX
            assert len(config.manifest.parent.children) == 2

    def test_docker_manifest_list(self, registry_api, run_with_context):
        child = registry_api.add_image(label='main')
        index = registry_api.add_index('octo/app', [child], media_type=DOCKER_MANIFEST_LIST)
        configs = resolve(run_with_context, index)
        assert configs[0].manifest.parent.media_type == DOCKER_MANIFEST_LIST

    def test_nested_index(self, registry_api, run_with_context):
        leaf = registry_api.add_image(label='main')
        inner = registry_api.add_index('octo/app', [leaf])
        outer = registry_api.add_index('octo/app', [inner])

        configs = resolve(run_with_context, outer)

        assert len(configs) == 1
        assert configs[0].manifest.parent.digest == inner
        assert configs[0].manifest.parent.parent.digest == outer

    def test_duplicate_children_resolved_once(self, registry_api, run_with_context):
        child = registry_api.add_image(label='main')
        index = registry_api.add_index('octo/app', [child, child])

        configs = resolve(run_with_context, index)

        assert len(configs) == 1
        assert len(registry_api.calls('GET', f'/v2/octo/app/manifests/{child}')) == 1

    def test_attestations_skipped(self, registry_api, run_with_context):
        child = registry_api.add_image(label='main')
        index = registry_api.add_index('octo/app', [child], attestations=['sha256:attestation'])

        configs = resolve(run_with_context, index)

        assert len(configs) == 1
        assert not registry_api.calls('GET', '/v2/octo/app/manifests/sha256:attestation')
        assert [c.digest for c in configs[0].manifest.parent.children] == [child]

    def test_entry_without_digest(self, registry_api, run_with_context):
        registry_api.add_manifest_document('octo/app', 'sha256:idx', {
            'mediaType': OCI_INDEX, 'manifests': [{'mediaType': 'x', 'size': 1}],
        })
        with pytest.raises(ManifestError, match='without a digest'):
            resolve(run_with_context, 'sha256:idx')

    def test_empty_index(self, registry_api, run_with_context):
        index = registry_api.add_index('octo/app', [])
        assert resolve(run_with_context, index) == []

    def test_child_failure_fails_whole_resolution(self, registry_api, run_with_context):
        good = registry_api.add_image(label='main')
        index = registry_api.add_index('octo/app', [good, 'sha256:missing'])
        with pytest.raises(RegistryError):
            resolve(run_with_context, index, jobs=2)

    def test_many_children_with_single_slot(self, registry_api, run_with_context):
        """Nested fetches never wait on a slot held by their parent."""
        children = [registry_api.add_image(label=f'v{i}') for i in range(6)]
        inner = registry_api.add_index('octo/app', children)
        outer = registry_api.add_index('octo/app', [inner])

        configs = resolve(run_with_context, outer, jobs=1)

        assert len(configs) == 6
