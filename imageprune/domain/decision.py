"""
Retention decision domain objects for imageprune.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from .package import ResolvedVersion


class DecisionReason(Enum):
    """Why a version is kept or deleted."""
    TOO_NEW = "too_new"
    TOO_OLD = "too_old"
    LABEL_PROTECTED = "label_protected"
    LABEL_UNPROTECTED = "label_unprotected"
    LABEL_MISSING = "label_missing"
    RESOLUTION_ERROR = "resolution_error"


@dataclass(frozen=True)
class RetentionDecision:
    """Keep or delete, with the rule that decided it."""
    version: ResolvedVersion
    should_delete: bool
    reason: DecisionReason

    @classmethod
    def keep(cls, version: ResolvedVersion, reason: DecisionReason) -> 'RetentionDecision':
        return cls(version=version, should_delete=False, reason=reason)

    @classmethod
    def delete(cls, version: ResolvedVersion, reason: DecisionReason) -> 'RetentionDecision':
        return cls(version=version, should_delete=True, reason=reason)

    def to_dict(self) -> Dict[str, Any]:
        v = self.version.version
        return {
            'image': self.version.display_image,
            'digest': v.name,
            'tags': list(v.tags),
            'updated_at': v.updated_at.isoformat() if v.updated_at else None,
            'action': 'delete' if self.should_delete else 'keep',
            'reason': self.reason.value,
            'url': v.html_url,
        }


@dataclass(frozen=True)
class EvaluationResult:
    """
    Outcome of evaluating one version: a decision or the error raised.

    fold() applies the fail-safe rule: an error always means keep.
    """
    version: ResolvedVersion
    decision: Optional[RetentionDecision] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def fold(self) -> RetentionDecision:
        if self.ok and self.decision is not None:
            return self.decision
        return RetentionDecision.keep(self.version, DecisionReason.RESOLUTION_ERROR)
