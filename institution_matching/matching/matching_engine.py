"""Match target institutions against installed-equipment records."""

from __future__ import annotations

from collections import Counter, defaultdict
from typing import DefaultDict, Dict, Iterable, List, Mapping, Sequence, Tuple

from loguru import logger

from institution_matching.matching.models import (
    ConfidenceTier,
    EquipmentRecord,
    MatchCandidate,
    MatchSummary,
    ReasonBreakdown,
    TargetInstitution,
    TargetMatchResult,
)
from institution_matching.matching.similarity import SimilarityScorer
from institution_matching.utils.config import MatchingConfig

RegionKey = Tuple[str, str]


def index_by_region(
    equipment: Iterable[EquipmentRecord],
) -> Dict[RegionKey, List[EquipmentRecord]]:
    """Bucket equipment by (province, district) for region-scoped matching."""
    buckets: DefaultDict[RegionKey, List[EquipmentRecord]] = defaultdict(list)
    for record in equipment:
        buckets[(record.province, record.district)].append(record)
    return dict(buckets)


class MatchingEngine:
    """Rank candidate equipment records for a target institution.

    The engine does not filter by geography: callers pass candidates that are
    already scoped to the target's province/district.
    """

    def __init__(
        self,
        scorer: SimilarityScorer | None = None,
        config: MatchingConfig | None = None,
    ) -> None:
        self.config = config or MatchingConfig()
        self.scorer = scorer or SimilarityScorer(matching_config=self.config)

    def match_target(
        self,
        target: TargetInstitution,
        candidates: Sequence[EquipmentRecord],
        confirmed: MatchCandidate | None = None,
    ) -> List[MatchCandidate]:
        """Score, floor, rank and truncate the candidates for one target.

        A reviewer-confirmed match is returned as-is and nothing is re-scored.
        """
        if target is None:
            raise ValueError("target is required")
        if candidates is None:
            raise ValueError("candidates must be a sequence (use [] for none)")
        if confirmed is not None:
            if confirmed.target_key != target.key:
                raise ValueError(
                    f"Confirmed match belongs to {confirmed.target_key!r}, not {target.key!r}"
                )
            return [confirmed]

        scored: List[MatchCandidate] = []
        for record in candidates:
            result = self.scorer.match_confidence(
                target.name,
                target.address_hint,
                record.installed_institution_name,
                record.installed_address,
            )
            if result.confidence < self.config.min_confidence:
                continue
            scored.append(
                MatchCandidate(
                    target_key=target.key,
                    management_number=record.management_number,
                    confidence=result.confidence,
                    reason_breakdown=ReasonBreakdown(
                        name=result.name_score, address=result.address_score
                    ),
                )
            )

        scored.sort(key=lambda candidate: candidate.confidence, reverse=True)
        ranked = scored[: self.config.max_candidates]
        logger.debug(
            "Target {} matched {}/{} candidates above {}",
            target.key,
            len(ranked),
            len(candidates),
            self.config.min_confidence,
        )
        return ranked

    def confidence_tier(self, candidates: Sequence[MatchCandidate]) -> ConfidenceTier | None:
        """Tier of the top candidate; None means unmatched."""
        if not candidates:
            return None
        top = candidates[0].confidence
        if top >= self.config.high_tier:
            return "high"
        if top >= self.config.medium_tier:
            return "medium"
        return "low"

    def match_all(
        self,
        targets: Sequence[TargetInstitution],
        equipment: Iterable[EquipmentRecord] | Mapping[RegionKey, Sequence[EquipmentRecord]],
        confirmed: Mapping[str, MatchCandidate] | None = None,
        tier: ConfidenceTier | None = None,
    ) -> List[TargetMatchResult]:
        """Match every target against the equipment in its own region.

        ``tier`` drops matched targets whose top candidate falls in another tier;
        unmatched targets are always kept and reported as unmatched.
        """
        if targets is None:
            raise ValueError("targets must be a sequence")
        if equipment is None:
            raise ValueError("equipment must be an iterable or a region index")

        buckets = equipment if isinstance(equipment, Mapping) else index_by_region(equipment)
        confirmed = confirmed or {}

        results: List[TargetMatchResult] = []
        for target in targets:
            prior = confirmed.get(target.key)
            regional = buckets.get((target.province, target.district), [])
            candidates = self.match_target(target, regional, confirmed=prior)
            target_tier = self.confidence_tier(candidates)

            if tier is not None and candidates and target_tier != tier:
                continue

            if prior is not None:
                status = "confirmed"
            elif candidates:
                status = "matched"
            else:
                status = "unmatched"
            results.append(
                TargetMatchResult(
                    target=target, candidates=candidates, tier=target_tier, status=status
                )
            )

        logger.info("Matched {} targets (tier filter: {})", len(results), tier or "all")
        return results

    def summarize(self, results: Sequence[TargetMatchResult]) -> MatchSummary:
        """Matched/unmatched counts and match rate (percent, one decimal)."""
        total = len(results)
        matched = sum(1 for result in results if result.candidates)
        tiers = Counter(result.tier for result in results if result.tier is not None)
        return MatchSummary(
            total=total,
            matched=matched,
            unmatched=total - matched,
            match_rate=round(matched / total * 100, 1) if total else 0.0,
            by_tier={name: tiers.get(name, 0) for name in ("high", "medium", "low")},
        )
