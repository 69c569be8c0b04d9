"""Normalization package."""

from institution_matching.normalization.address_normalizer import (
    AddressNormalizationResult,
    AddressNormalizer,
)
from institution_matching.normalization.cache import (
    CachedNormalizer,
    CacheStats,
    NormalizationCache,
)
from institution_matching.normalization.rules import (
    NormalizationRule,
    NumeralNormalizeRule,
    PatternRemovalRule,
    RegionPrefixRemovalRule,
    RuleStore,
    SpecialCharRemovalRule,
    SuffixRemovalRule,
    WhitespaceNormalizeRule,
    default_rules,
    parse_rules,
)
from institution_matching.normalization.text_normalizer import (
    NormalizationResult,
    TextNormalizer,
)

__all__ = [
    "AddressNormalizationResult",
    "AddressNormalizer",
    "CacheStats",
    "CachedNormalizer",
    "NormalizationCache",
    "NormalizationResult",
    "NormalizationRule",
    "NumeralNormalizeRule",
    "PatternRemovalRule",
    "RegionPrefixRemovalRule",
    "RuleStore",
    "SpecialCharRemovalRule",
    "SuffixRemovalRule",
    "TextNormalizer",
    "WhitespaceNormalizeRule",
    "default_rules",
    "parse_rules",
]
