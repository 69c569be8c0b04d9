#!/usr/bin/env python3
"""Duplicate target institution grouping CLI.

Reads a JSON list of target institutions (typically one province or district),
sorts it into a stable order, groups likely duplicates and writes the groups,
the ungrouped remainder and the grouping statistics as JSON.

Usage:
    python scripts/group_institutions.py targets.json
    python scripts/group_institutions.py targets.json --threshold 0.9 -o groups.json
"""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import List

from loguru import logger
from pydantic import TypeAdapter
from rich.console import Console
from rich.table import Table

from institution_matching.matching import (
    GroupingEngine,
    SimilarityScorer,
    TargetInstitution,
    stable_order,
)
from institution_matching.normalization import CachedNormalizer, TextNormalizer
from institution_matching.utils import load_config, setup_logging


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Group target institutions that describe the same physical institution",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("targets", type=Path, help="JSON list of target institutions")
    parser.add_argument(
        "--config",
        "-c",
        type=Path,
        default=Path("config/config.yaml"),
        help="Path to configuration file (default: config/config.yaml)",
    )
    parser.add_argument("--threshold", type=float, default=None, help="Grouping threshold (0-1)")
    parser.add_argument(
        "--keep-order",
        action="store_true",
        help="Group in file order instead of sorting by name/province/district",
    )
    parser.add_argument("--output", "-o", type=Path, default=None, help="Output JSON path")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    args = parser.parse_args()

    config = load_config(args.config)
    setup_logging(config.logging, verbose=args.verbose)

    raw = json.loads(args.targets.read_text(encoding="utf-8"))
    institutions = TypeAdapter(List[TargetInstitution]).validate_python(raw)
    if not args.keep_order:
        institutions = stable_order(institutions)

    normalizer = CachedNormalizer(TextNormalizer(config.normalization), config=config.cache)
    scorer = SimilarityScorer(normalizer, grouping_config=config.grouping)
    engine = GroupingEngine(scorer, config.grouping)

    result = engine.group(institutions, threshold=args.threshold)
    stats = engine.group_stats(result.groups, result.ungrouped)

    payload = {
        **result.model_dump(mode="json", by_alias=True),
        "stats": stats.model_dump(mode="json", by_alias=True),
        "threshold": args.threshold if args.threshold is not None else config.grouping.threshold,
    }
    text = json.dumps(payload, indent=2, ensure_ascii=False)
    if args.output:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        args.output.write_text(text, encoding="utf-8")
        logger.info("Wrote {} groups to {}", stats.group_count, args.output)
    else:
        print(text)

    table = Table(title="Top groups")
    table.add_column("Group")
    table.add_column("Master")
    table.add_column("Members", justify="right")
    table.add_column("Equipment", justify="right")
    table.add_column("Similarity", justify="right")
    table.add_column("Tier")
    for group in result.groups[:20]:
        table.add_row(
            group.group_id,
            group.master.name,
            str(len(group.members)),
            str(group.total_equipment),
            f"{group.average_similarity:.3f}",
            group.confidence_tier,
        )
    console = Console(stderr=True)
    console.print(table)
    console.print(
        f"{stats.total_institutions} institutions, {stats.group_count} groups, "
        f"{stats.potential_duplicates} potential duplicates"
    )


if __name__ == "__main__":
    main()
