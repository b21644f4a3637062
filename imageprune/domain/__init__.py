"""
Domain layer for imageprune.

Contains pure domain objects with no I/O or side effects:
- Reference: A sanitized branch, tag or pull request name
- Package / PackageVersion / ResolvedVersion: What is stored in the registry
- Manifest / ImageConfig: What a version resolves to
- RetentionDecision: Whether a version is kept or deleted, and why

All objects are immutable.
"""

from .reference import Reference, RefKind, sanitize_tag
from .package import GitHubRepository, Package, PackageVersion, ResolvedVersion
from .manifest import ImageConfig, Manifest, ManifestDescriptor
from .decision import DecisionReason, EvaluationResult, RetentionDecision

__all__ = [
    'Reference',
    'RefKind',
    'sanitize_tag',
    'GitHubRepository',
    'Package',
    'PackageVersion',
    'ResolvedVersion',
    'ImageConfig',
    'Manifest',
    'ManifestDescriptor',
    'DecisionReason',
    'EvaluationResult',
    'RetentionDecision',
]
