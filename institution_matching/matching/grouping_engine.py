"""Greedy duplicate grouping of target institutions across compliance lists."""

from __future__ import annotations

from collections import defaultdict
from typing import Callable, DefaultDict, Dict, List, Sequence

import numpy as np
from loguru import logger

from institution_matching.matching.models import (
    ConfidenceTier,
    GroupingResult,
    GroupStats,
    InstitutionGroup,
    TargetInstitution,
)
from institution_matching.matching.similarity import SimilarityScorer
from institution_matching.utils.config import GroupingConfig

PairScorer = Callable[[TargetInstitution, TargetInstitution], float]


def stable_order(institutions: Sequence[TargetInstitution]) -> List[TargetInstitution]:
    """Sort by name, province, district (then key) for reproducible grouping."""
    return sorted(
        institutions,
        key=lambda inst: (inst.name, inst.province, inst.district, inst.key),
    )


def group_stats(
    groups: Sequence[InstitutionGroup], ungrouped: Sequence[TargetInstitution]
) -> GroupStats:
    """Summary counts for a grouping run.

    ``potential_duplicates`` is how many records would disappear if every group
    were collapsed into its master.
    """
    grouped = sum(len(group.members) for group in groups)
    average_size = grouped / len(groups) if groups else 0.0
    return GroupStats(
        total_institutions=grouped + len(ungrouped),
        grouped_institutions=grouped,
        ungrouped_institutions=len(ungrouped),
        group_count=len(groups),
        average_group_size=round(average_size, 1),
        potential_duplicates=grouped - len(groups),
        equipment_in_groups=sum(group.total_equipment for group in groups),
        equipment_in_ungrouped=sum(inst.equipment_count for inst in ungrouped),
    )


class GroupingEngine:
    """Collapse target institutions that describe the same physical institution.

    Clustering is a single forward-looking greedy pass: each unprocessed
    institution claims every *later* unprocessed institution scoring at or above
    the threshold against it. The result therefore depends on input order; pass
    a stable ordering (see ``stable_order``) for reproducible output.
    """

    def __init__(
        self,
        scorer: SimilarityScorer | None = None,
        config: GroupingConfig | None = None,
        pair_scorer: PairScorer | None = None,
    ) -> None:
        self.config = config or GroupingConfig()
        self.scorer = scorer or SimilarityScorer(grouping_config=self.config)
        self.pair_scorer: PairScorer = pair_scorer or self.scorer.pair_score

    def group(
        self, institutions: Sequence[TargetInstitution], threshold: float | None = None
    ) -> GroupingResult:
        threshold = self.config.threshold if threshold is None else threshold
        self._validate(institutions, threshold)

        logger.info(
            "Grouping {} institutions at threshold {:.2f}", len(institutions), threshold
        )

        groups: List[InstitutionGroup] = []
        ungrouped: List[TargetInstitution] = []
        processed = [False] * len(institutions)

        for index, current in enumerate(institutions):
            if processed[index]:
                continue
            processed[index] = True

            members = [current]
            scores: List[float] = []
            for other_index in range(index + 1, len(institutions)):
                if processed[other_index]:
                    continue
                candidate = institutions[other_index]
                score = float(self.pair_scorer(current, candidate))
                if score >= threshold:
                    members.append(candidate)
                    scores.append(score)
                    processed[other_index] = True

            if len(members) < 2:
                ungrouped.append(current)
                continue

            groups.append(self._build_group(f"group_{len(groups) + 1}", members, scores))

        groups.sort(key=lambda group: group.total_equipment, reverse=True)
        logger.info("Formed {} groups, {} institutions ungrouped", len(groups), len(ungrouped))
        return GroupingResult(groups=groups, ungrouped=ungrouped)

    def group_stats(
        self, groups: Sequence[InstitutionGroup], ungrouped: Sequence[TargetInstitution]
    ) -> GroupStats:
        return group_stats(groups, ungrouped)

    def quick_group_by_hash(
        self, institutions: Sequence[TargetInstitution], prefix_length: int = 5
    ) -> Dict[str, List[TargetInstitution]]:
        """Cheap pre-screen: bucket by province plus the normalized name prefix.

        Only buckets holding two or more institutions are returned. Less accurate
        than ``group`` but linear in the input size.
        """
        if institutions is None:
            raise ValueError("institutions must be a sequence")
        buckets: DefaultDict[str, List[TargetInstitution]] = defaultdict(list)
        for inst in institutions:
            normalized = self.scorer.normalizer.normalize_with_cache(inst.name).normalized
            if not normalized:
                continue
            buckets[f"{inst.province}_{normalized[:prefix_length]}"].append(inst)
        return {key: members for key, members in buckets.items() if len(members) >= 2}

    def _build_group(
        self, group_id: str, members: List[TargetInstitution], scores: List[float]
    ) -> InstitutionGroup:
        # max() keeps the first maximal element, so ties go to the earliest member.
        master = max(members, key=lambda inst: inst.equipment_count)
        average = round(float(np.mean(scores)), 6) if scores else 1.0
        return InstitutionGroup(
            group_id=group_id,
            master=master,
            members=members,
            average_similarity=average,
            total_equipment=sum(inst.equipment_count for inst in members),
            confidence_tier=self._tier(average),
        )

    def _tier(self, average_similarity: float) -> ConfidenceTier:
        if average_similarity >= self.config.high_tier:
            return "high"
        if average_similarity >= self.config.medium_tier:
            return "medium"
        return "low"

    def _validate(self, institutions: Sequence[TargetInstitution], threshold: float) -> None:
        if institutions is None:
            raise ValueError("institutions must be a sequence, not None")
        if not 0.0 <= threshold <= 1.0:
            raise ValueError(f"threshold must be within [0, 1], got {threshold}")
        if len(institutions) > self.config.max_institutions:
            raise ValueError(
                f"{len(institutions)} institutions exceeds the limit of "
                f"{self.config.max_institutions}; narrow the region filter"
            )

        seen: set[str] = set()
        for inst in institutions:
            if not isinstance(inst, TargetInstitution):
                raise TypeError(f"Expected TargetInstitution, got {type(inst).__name__}")
            if inst.key in seen:
                raise ValueError(f"Duplicate target institution key: {inst.key}")
            seen.add(inst.key)
