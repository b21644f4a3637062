"""
Package version inventory for imageprune.

Lists the container packages that belong to a repository and every
version of each.
"""

from typing import List

from ..domain import GitHubRepository, Package, PackageVersion, ResolvedVersion
from ..utils import bounded_gather
from .context import PruneContext


class VersionInventory:
    """
    Lists container packages and their versions.

    The owner's package listing can span many repositories; only packages
    linked to this repository (by node_id) are kept. A failure listing any
    package's versions aborts the run: a partial version list would make
    that package silently under-cleaned.
    """

    def __init__(self, context: PruneContext):
        self.github = context.github
        self.jobs = context.jobs
        self.log = context.get_logger("inventory")

    async def _repository_packages(self, repo: GitHubRepository) -> List[Package]:
        packages = []
        async for item in self.github.iter_items(
            f"{repo.owner_url}/packages",
            {'package_type': 'container'},
        ):
            package = Package.from_api_response(item)
            if package.belongs_to(repo):
                packages.append(package)
            else:
                self.log.debug(f"Skipping package {package.name}: not linked to {repo.full_name}")
        return packages

    async def _with_versions(self, package: Package) -> Package:
        versions = [
            PackageVersion.from_api_response(item)
            async for item in self.github.iter_items(f"{package.url}/versions")
        ]
        self.log.debug(f"Package {package.name} has {len(versions)} versions")
        return package.with_versions(versions)

    async def list_packages(self, repo: GitHubRepository) -> List[Package]:
        """
        List the repository's container packages with versions attached.

        Args:
            repo: Repository the packages must be linked to

        Returns:
            Packages, each carrying its full version list
        """
        packages = await self._repository_packages(repo)
        self.log.info(f"Container packages found for {repo.full_name}: {[p.name for p in packages]}")
        return await bounded_gather(self._with_versions, packages, self.jobs)

    @staticmethod
    def resolve(packages: List[Package], registry_host: str) -> List[ResolvedVersion]:
        """Place every package version in its registry context."""
        return [
            ResolvedVersion(
                version=version,
                package_name=package.name,
                owner=package.owner,
                registry_host=registry_host,
            )
            for package in packages
            for version in package.versions
        ]

    async def versions(self, repo: GitHubRepository, registry_host: str) -> List[ResolvedVersion]:
        """List every version of every repository package, resolved for the registry."""
        return self.resolve(await self.list_packages(repo), registry_host)
