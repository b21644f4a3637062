"""
Reference collection for imageprune.

Gathers every live branch, tag and open pull request of a repository as
sanitized names. Images labelled with one of these names are protected.
"""

import asyncio
from typing import AsyncIterator, FrozenSet, List

from ..domain import GitHubRepository, Reference, RefKind
from .context import PruneContext


class ReferenceCollector:
    """
    Collects protected reference names for a repository.

    Listing failures are not caught: without the full set, later delete
    decisions cannot be trusted, so the run must abort.

    Pagination may skip an item deleted upstream while listing. Tags are
    never deleted upstream of this tool, so a skipped branch or pull
    request only causes an extra, recoverable deletion.

    Example:
        collector = ReferenceCollector(context)
        names = await collector.collect(repo)
        "main" in names
    """

    def __init__(self, context: PruneContext):
        self.github = context.github
        self.log = context.get_logger("references")

    async def branches(self, repo: GitHubRepository) -> AsyncIterator[Reference]:
        async for branch in self.github.iter_items(repo.branches_url):
            yield Reference.from_raw(branch['name'], RefKind.BRANCH)

    async def tags(self, repo: GitHubRepository) -> AsyncIterator[Reference]:
        async for tag in self.github.iter_items(repo.tags_url):
            yield Reference.from_raw(tag['name'], RefKind.TAG)

    async def pull_requests(self, repo: GitHubRepository) -> AsyncIterator[Reference]:
        async for pull in self.github.iter_items(repo.pulls_url, {'state': 'open'}):
            yield Reference.pull_request(pull['number'])

    async def collect(self, repo: GitHubRepository) -> FrozenSet[str]:
        """
        Collect the set of sanitized protected names.

        Args:
            repo: Repository to list references of

        Returns:
            Frozen set of sanitized names; order is irrelevant
        """
        async def names_from(source) -> List[str]:
            return [ref.name async for ref in source(repo)]

        listings = await asyncio.gather(
            *(names_from(source) for source in (self.branches, self.tags, self.pull_requests))
        )
        names = frozenset(name for listing in listings for name in listing)
        self.log.info(f"Branches, tags and pull requests found: {sorted(names)}")
        return names
