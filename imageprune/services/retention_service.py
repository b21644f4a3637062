"""
Retention evaluation for imageprune.

Decides per version whether it is kept or deleted. Rules, first match
wins:

1. Updated within min_age          -> keep   (too_new)
2. Updated before max_age          -> delete (too_old)
3. Otherwise inspect the version label of every platform variant:
   - any variant without a label   -> keep   (label_missing)
   - any label naming a live ref   -> keep   (label_protected)
   - all labels name dead refs     -> delete (label_unprotected)
4. Any error evaluating a version  -> keep   (resolution_error)
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import FrozenSet, List, Optional

from ..domain import (
    DecisionReason,
    EvaluationResult,
    ImageConfig,
    ResolvedVersion,
    RetentionDecision,
    sanitize_tag,
)
from ..domain.manifest import VERSION_LABEL
from ..exit_codes import ManifestError
from ..utils import bounded_gather
from .context import PruneContext
from .manifest_service import ManifestResolver

DEFAULT_MIN_AGE = timedelta(days=1)
DEFAULT_MAX_AGE = timedelta(days=365)


@dataclass(frozen=True)
class RetentionPolicy:
    """Age thresholds that short-circuit label inspection."""
    min_age: timedelta = DEFAULT_MIN_AGE
    max_age: timedelta = DEFAULT_MAX_AGE

    def __post_init__(self):
        if self.min_age < timedelta(0):
            raise ValueError("min_age must not be negative")
        if self.max_age <= self.min_age:
            raise ValueError("max_age must be greater than min_age")

    @classmethod
    def from_days(cls, min_age_days: float = 1, max_age_days: float = 365) -> 'RetentionPolicy':
        return cls(min_age=timedelta(days=min_age_days), max_age=timedelta(days=max_age_days))


class RetentionEvaluator:
    """
    Evaluates the retention rules for package versions.

    A multi-platform image is one artifact: it is deleted only when every
    variant votes delete, and any single protecting variant keeps it.

    Args:
        context: Run context (clients, logger, concurrency limit)
        references: Sanitized names of live branches, tags and pull requests
        resolver: Manifest resolver (created from the context if None)
        policy: Age thresholds
        now: Evaluation time (defaults to the current UTC time)
    """

    def __init__(
        self,
        context: PruneContext,
        references: FrozenSet[str],
        resolver: Optional[ManifestResolver] = None,
        policy: Optional[RetentionPolicy] = None,
        now: Optional[datetime] = None,
    ):
        self.references = references
        self.resolver = resolver or ManifestResolver(context)
        self.policy = policy or RetentionPolicy()
        self.now = now or datetime.now(timezone.utc)
        self.jobs = context.jobs
        self.log = context.get_logger("retention")

    def _vote(self, version: ResolvedVersion, config: ImageConfig) -> DecisionReason:
        """Classify one platform variant."""
        label = config.version_label
        if label is None:
            self.log.error(
                f"No {VERSION_LABEL} label in config of {version.image}@{config.manifest.digest}"
            )
            return DecisionReason.LABEL_MISSING
        self.log.debug(f"Version of {version.image}@{config.manifest.digest}: {label}")
        if sanitize_tag(label) in self.references:
            return DecisionReason.LABEL_PROTECTED
        return DecisionReason.LABEL_UNPROTECTED

    async def _decide(self, version: ResolvedVersion) -> RetentionDecision:
        updated_at = version.version.updated_at
        if updated_at is None:
            raise ValueError(f"{version.image_ref} has no usable updated_at")

        if updated_at > self.now - self.policy.min_age:
            return RetentionDecision.keep(version, DecisionReason.TOO_NEW)

        if updated_at < self.now - self.policy.max_age:
            return RetentionDecision.delete(version, DecisionReason.TOO_OLD)

        configs = await self.resolver.resolve(version.repository, version.version.name)
        if not configs:
            raise ManifestError(f"{version.image_ref} resolved to no image configs")

        votes = [self._vote(version, config) for config in configs]
        if DecisionReason.LABEL_MISSING in votes:
            return RetentionDecision.keep(version, DecisionReason.LABEL_MISSING)
        if DecisionReason.LABEL_PROTECTED in votes:
            return RetentionDecision.keep(version, DecisionReason.LABEL_PROTECTED)
        return RetentionDecision.delete(version, DecisionReason.LABEL_UNPROTECTED)

    async def evaluate(self, version: ResolvedVersion) -> EvaluationResult:
        """
        Evaluate one version without letting its errors escape.

        Returns:
            EvaluationResult holding either the decision or the error
        """
        self.log.debug(f"Processing {version.display_image}")
        try:
            decision = await self._decide(version)
        except Exception as e:
            self.log.error(f"Failed to evaluate {version.display_image}, keeping it: {e}")
            self.log.debug("Evaluation failure details", exc_info=True)
            return EvaluationResult(version=version, error=e)
        return EvaluationResult(version=version, decision=decision)

    def _log_decision(self, decision: RetentionDecision) -> None:
        version = decision.version
        updated_at = version.version.updated_at
        updated = updated_at.isoformat() if updated_at else "unknown"
        if decision.reason is DecisionReason.TOO_NEW:
            self.log.info(f"Image {version.display_image} is too new ({updated})")
        elif decision.reason is DecisionReason.TOO_OLD:
            self.log.info(f"Image {version.display_image} is too old ({updated})")
        elif decision.should_delete:
            self.log.info(f"Image {version.display_image} is not referenced by any live ref")
        else:
            self.log.debug(f"Keeping {version.display_image}: {decision.reason.value}")

    async def decide(self, version: ResolvedVersion) -> RetentionDecision:
        """Evaluate one version, mapping any error to keep."""
        decision = (await self.evaluate(version)).fold()
        self._log_decision(decision)
        return decision

    async def decide_all(self, versions: List[ResolvedVersion]) -> List[RetentionDecision]:
        """Decide every version with bounded concurrency, in input order."""
        return await bounded_gather(self.decide, versions, self.jobs)
