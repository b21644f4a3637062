"""
Service layer for imageprune.

Contains the pipeline logic that orchestrates domain objects and
infrastructure:
- ReferenceCollector: Live branch, tag and pull request names
- VersionInventory: Container packages and their versions
- ManifestResolver: Version -> image configs, through manifest indices
- RetentionEvaluator: Keep or delete, per version
- DeletionExecutor: Deletes (or simulates deleting) versions
- PruneService: One full pass over a repository

Services receive an explicit PruneContext; commands build it.
"""

from .context import PruneContext
from .reference_service import ReferenceCollector
from .inventory_service import VersionInventory
from .manifest_service import ManifestResolver
from .retention_service import RetentionEvaluator, RetentionPolicy
from .deletion_service import DeletionExecutor, DeletionReport, DeletionResult
from .prune_service import PruneReport, PruneService, split_repository

__all__ = [
    'PruneContext',
    'ReferenceCollector',
    'VersionInventory',
    'ManifestResolver',
    'RetentionEvaluator',
    'RetentionPolicy',
    'DeletionExecutor',
    'DeletionReport',
    'DeletionResult',
    'PruneReport',
    'PruneService',
    'split_repository',
]
