"""
Explicit run context shared by the imageprune services.

Services receive their clients, logger and concurrency limit from here
rather than from module-level singletons.
"""

import logging
from dataclasses import dataclass, field

from ..infra import GitHubClient, RegistryClient


@dataclass(frozen=True)
class PruneContext:
    """Clients and settings for one prune run."""
    github: GitHubClient
    registry: RegistryClient
    jobs: int = 1
    dry_run: bool = False
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger("imageprune"))

    def get_logger(self, name: str) -> logging.Logger:
        return self.logger.getChild(name)
