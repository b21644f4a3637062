"""
Deletion of package versions for imageprune.
"""

from dataclasses import dataclass
from typing import List, Optional

import httpx

from ..domain import ResolvedVersion
from ..exit_codes import APIError, RateLimitError
from ..utils import bounded_gather
from .context import PruneContext


@dataclass(frozen=True)
class DeletionResult:
    """Outcome of deleting (or simulating the deletion of) one version."""
    version: ResolvedVersion
    deleted: bool
    error: Optional[str] = None


@dataclass(frozen=True)
class DeletionReport:
    """Totals of a deletion pass."""
    results: tuple
    dry_run: bool

    @property
    def processed(self) -> int:
        """Versions deleted, attempted or simulated."""
        return len(self.results)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if r.error is not None)

    @property
    def succeeded(self) -> int:
        return self.processed - self.failed

    def summary(self) -> str:
        if self.dry_run:
            return f"Will delete {self.processed} package versions"
        line = f"Deleted {self.processed} package versions"
        if self.failed:
            line += f" ({self.failed} failed)"
        return line


class DeletionExecutor:
    """
    Deletes package versions, or only logs what it would delete.

    In dry-run mode no delete request is ever sent. A failed delete is
    logged and recorded on its result; it does not stop the others.
    """

    def __init__(self, context: PruneContext):
        self.github = context.github
        self.jobs = context.jobs
        self.dry_run = context.dry_run
        self.log = context.get_logger("deletion")

    async def delete(self, version: ResolvedVersion) -> DeletionResult:
        """Delete one version through its API endpoint."""
        v = version.version
        self.log.info(f"Deleting {version.display_image} - {v.html_url}")

        if self.dry_run:
            self.log.info(f"DELETE {v.url}")
            return DeletionResult(version=version, deleted=False)

        try:
            await self.github.delete(v.url)
        except RateLimitError:
            raise
        except (APIError, httpx.HTTPError) as e:
            self.log.error(f"Failed to delete {version.display_image}: {e}")
            return DeletionResult(version=version, deleted=False, error=str(e))
        return DeletionResult(version=version, deleted=True)

    async def execute(self, versions: List[ResolvedVersion]) -> DeletionReport:
        """
        Delete every given version with bounded concurrency.

        Returns:
            DeletionReport whose processed count is the run's summary figure
        """
        finished: List[DeletionResult] = []

        async def delete_and_record(version: ResolvedVersion) -> DeletionResult:
            result = await self.delete(version)
            finished.append(result)
            return result

        try:
            results = await bounded_gather(delete_and_record, versions, self.jobs)
        except RateLimitError:
            deleted = sum(1 for r in finished if r.deleted)
            self.log.error(
                f"Rate limited, aborting after {len(finished)} of {len(versions)} package versions "
                f"({deleted} deleted)"
            )
            raise
        return DeletionReport(results=tuple(results), dry_run=self.dry_run)
