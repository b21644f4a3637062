"""
Prune service for imageprune.

Composes the single forward pass over one repository's packages:
references and inventory (concurrently), retention decisions, deletions.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Tuple

from ..domain import RetentionDecision
from .context import PruneContext
from .deletion_service import DeletionExecutor, DeletionReport
from .inventory_service import VersionInventory
from .reference_service import ReferenceCollector
from .retention_service import RetentionEvaluator, RetentionPolicy


def split_repository(owner: str, repository: str) -> Tuple[str, str]:
    """
    Split a repository argument into (owner, name).

    Accepts both 'name' and 'owner/name' (the form of $GITHUB_REPOSITORY).
    """
    prefix = f"{owner}/"
    if repository.startswith(prefix):
        return owner, repository[len(prefix):]
    return owner, repository


@dataclass(frozen=True)
class PruneReport:
    """Everything a prune run decided and did."""
    decisions: Tuple[RetentionDecision, ...]
    deletion: DeletionReport

    @property
    def kept(self) -> int:
        return sum(1 for d in self.decisions if not d.should_delete)

    @property
    def deleted(self) -> int:
        return self.deletion.processed


class PruneService:
    """
    Runs one prune pass.

    Errors before the per-version stage (repository lookup, reference
    collection, inventory) propagate and abort the run. Per-version errors
    are contained by the RetentionEvaluator.

    Example:
        async with GitHubClient(token) as github, RegistryClient(token) as registry:
            context = PruneContext(github=github, registry=registry, jobs=4)
            report = await PruneService(context).run("octo", "octo/app")
    """

    def __init__(
        self,
        context: PruneContext,
        policy: Optional[RetentionPolicy] = None,
        now: Optional[datetime] = None,
    ):
        self.context = context
        self.policy = policy or RetentionPolicy()
        self.now = now
        self.log = context.get_logger("prune")
        self.collector = ReferenceCollector(context)
        self.inventory = VersionInventory(context)
        self.executor = DeletionExecutor(context)

    async def run(self, owner: str, repository: str) -> PruneReport:
        owner, name = split_repository(owner, repository)
        repo = await self.context.github.get_repository(owner, name)

        references, versions = await asyncio.gather(
            self.collector.collect(repo),
            self.inventory.versions(repo, self.context.registry.host),
        )
        self.log.info(f"Evaluating {len(versions)} package versions")

        evaluator = RetentionEvaluator(
            self.context,
            references,
            policy=self.policy,
            now=self.now,
        )
        decisions: List[RetentionDecision] = await evaluator.decide_all(versions)

        to_delete = [d.version for d in decisions if d.should_delete]
        deletion = await self.executor.execute(to_delete)
        self.log.info(deletion.summary())

        return PruneReport(decisions=tuple(decisions), deletion=deletion)
