"""
imageprune - Prune stale container images of a GitHub repository.

imageprune keeps the image versions of a repository's GitHub Packages
that are recent or still referenced by a live branch, tag or open pull
request, and deletes everything else.

Quick Start:
    import asyncio
    from imageprune import GitHubClient, RegistryClient, PruneContext, PruneService

    async def main(token):
        async with GitHubClient(token) as github, RegistryClient(token) as registry:
            context = PruneContext(github=github, registry=registry, jobs=4, dry_run=True)
            report = await PruneService(context).run("octo", "octo/app")
            for decision in report.decisions:
                print(decision.version.display_image, decision.reason.value)

    asyncio.run(main("ghp_..."))

Domain Objects:
    Reference - Sanitized branch, tag or pull request name
    PackageVersion / ResolvedVersion - A stored image version
    Manifest / ImageConfig - What a version resolves to
    RetentionDecision - Keep or delete, and why

Services:
    ReferenceCollector, VersionInventory, ManifestResolver,
    RetentionEvaluator, DeletionExecutor, PruneService
"""

__version__ = "0.3.0"

# Domain objects
from .domain import (
    Reference,
    RefKind,
    sanitize_tag,
    GitHubRepository,
    Package,
    PackageVersion,
    ResolvedVersion,
    Manifest,
    ImageConfig,
    DecisionReason,
    RetentionDecision,
)

# Infrastructure
from .infra import GitHubClient, RegistryClient

# Services
from .services import (
    PruneContext,
    PruneService,
    PruneReport,
    ReferenceCollector,
    VersionInventory,
    ManifestResolver,
    RetentionEvaluator,
    RetentionPolicy,
    DeletionExecutor,
)

__all__ = [
    "__version__",
    # Domain objects
    "Reference",
    "RefKind",
    "sanitize_tag",
    "GitHubRepository",
    "Package",
    "PackageVersion",
    "ResolvedVersion",
    "Manifest",
    "ImageConfig",
    "DecisionReason",
    "RetentionDecision",
    # Infrastructure
    "GitHubClient",
    "RegistryClient",
    # Services
    "PruneContext",
    "PruneService",
    "PruneReport",
    "ReferenceCollector",
    "VersionInventory",
    "ManifestResolver",
    "RetentionEvaluator",
    "RetentionPolicy",
    "DeletionExecutor",
]
