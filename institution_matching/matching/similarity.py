"""Edit-distance similarity and the composite scores built on top of it."""

from __future__ import annotations

from typing import Tuple

from loguru import logger
from rapidfuzz.distance import Levenshtein

from institution_matching.matching.models import (
    InstitutionSimilarity,
    MatchConfidence,
    TargetInstitution,
)
from institution_matching.normalization.address_normalizer import AddressNormalizationResult
from institution_matching.normalization.cache import CachedNormalizer
from institution_matching.utils.config import GroupingConfig, MatchingConfig


def similarity(a: str, b: str) -> int:
    """Levenshtein similarity of two normalized strings, 0-100.

    ``round((1 - distance / max_len) * 100)`` with halves rounded up. An empty
    string never matches anything, including another empty string.
    """
    if not a or not b:
        return 0
    if a == b:
        return 100

    longest = max(len(a), len(b))
    distance = Levenshtein.distance(a, b)
    # Integer form of round-half-up(100 * (longest - distance) / longest).
    return (200 * (longest - distance) + longest) // (2 * longest)


class SimilarityScorer:
    """Score target institutions against equipment records or against each other."""

    def __init__(
        self,
        normalizer: CachedNormalizer | None = None,
        matching_config: MatchingConfig | None = None,
        grouping_config: GroupingConfig | None = None,
    ) -> None:
        self.normalizer = normalizer or CachedNormalizer()
        self.matching_config = matching_config or MatchingConfig()
        self.grouping_config = grouping_config or GroupingConfig()

    def similarity(self, a: str, b: str) -> int:
        return similarity(a, b)

    def name_similarity(self, a: str | None, b: str | None) -> int:
        """Similarity of two raw names after rule normalization."""
        left = self.normalizer.normalize_with_cache(a).normalized
        right = self.normalizer.normalize_with_cache(b).normalized
        if left and left == right:
            return 100
        return similarity(left, right)

    def address_similarity(self, a: str | None, b: str | None) -> int:
        """Similarity of two raw addresses; equal hashes short-circuit to 100."""
        left = self.normalizer.normalize_address_with_cache(a)
        right = self.normalizer.normalize_address_with_cache(b)
        return self._address_score(left, right)

    def match_confidence(
        self,
        target_name: str | None,
        target_address: str | None,
        equipment_name: str | None,
        equipment_address: str | None,
    ) -> MatchConfidence:
        """Composite target/equipment confidence on the 0-100 scale.

        With both addresses available the score is weighted name/address
        (0.6/0.4 by default); otherwise it is the name score alone.
        """
        name_score = self.name_similarity(target_name, equipment_name)

        target_addr = self.normalizer.normalize_address_with_cache(target_address)
        equipment_addr = self.normalizer.normalize_address_with_cache(equipment_address)
        if target_addr.is_empty or equipment_addr.is_empty:
            return MatchConfidence(confidence=float(name_score), name_score=name_score, address_score=0)

        address_score = self._address_score(target_addr, equipment_addr)
        confidence = (
            self.matching_config.name_weight * name_score
            + self.matching_config.address_weight * address_score
        )
        return MatchConfidence(
            confidence=round(min(100.0, max(0.0, confidence)), 2),
            name_score=name_score,
            address_score=address_score,
        )

    def institution_similarity(
        self, left: TargetInstitution, right: TargetInstitution
    ) -> InstitutionSimilarity:
        """Three-factor name/region/division score between two targets, 0-1."""
        score, name_score, region_score, division_score = self._institution_factors(left, right)
        return InstitutionSimilarity(
            score=round(score, 6),
            name_score=name_score,
            address_score=region_score,
            division_score=round(division_score, 6),
        )

    def pair_score(self, left: TargetInstitution, right: TargetInstitution) -> float:
        """Unrounded three-factor score, used for threshold comparisons."""
        return self._institution_factors(left, right)[0]

    def _institution_factors(
        self, left: TargetInstitution, right: TargetInstitution
    ) -> Tuple[float, float, float, float]:
        config = self.grouping_config
        name_score = self.name_similarity(left.name, right.name) / 100.0

        region_score = 0.0
        if left.province == right.province:
            region_score += 0.5
            if left.district == right.district:
                region_score += 0.5

        division_score = 0.0
        if left.category == right.category:
            division_score += 0.6
            if left.sub_category == right.sub_category:
                division_score += 0.4

        score = (
            config.name_weight * name_score
            + config.region_weight * region_score
            + config.division_weight * division_score
        )
        return score, name_score, region_score, division_score

    def _address_score(
        self, left: AddressNormalizationResult, right: AddressNormalizationResult
    ) -> int:
        if left.hash and left.hash == right.hash:
            return 100
        score = max(
            similarity(left.road_form, right.road_form),
            similarity(left.lot_form, right.lot_form),
        )
        logger.trace("Address similarity {!r} vs {!r} -> {}", left.road_form, right.road_form, score)
        return score
