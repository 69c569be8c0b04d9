"""Matching and grouping engines."""

from institution_matching.matching.grouping_engine import (
    GroupingEngine,
    group_stats,
    stable_order,
)
from institution_matching.matching.matching_engine import MatchingEngine, index_by_region
from institution_matching.matching.models import (
    EquipmentRecord,
    GroupingResult,
    GroupStats,
    InstitutionGroup,
    InstitutionSimilarity,
    MatchCandidate,
    MatchConfidence,
    MatchSummary,
    ReasonBreakdown,
    TargetInstitution,
    TargetMatchResult,
)
from institution_matching.matching.similarity import SimilarityScorer, similarity

__all__ = [
    "EquipmentRecord",
    "GroupingEngine",
    "GroupingResult",
    "GroupStats",
    "InstitutionGroup",
    "InstitutionSimilarity",
    "MatchCandidate",
    "MatchConfidence",
    "MatchSummary",
    "MatchingEngine",
    "ReasonBreakdown",
    "SimilarityScorer",
    "TargetInstitution",
    "TargetMatchResult",
    "group_stats",
    "index_by_region",
    "similarity",
    "stable_order",
]
