#!/usr/bin/env python3
"""Script to export contributed-to repositories to CSV and JSON."""

import logging
import sys
import os
import csv
import json
from datetime import datetime

# Add repository root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from contributions.application.contributions_service import ContributionsService
from contributions.application.memory_cache import MemoryCache
from contributions.domain.query import DEFAULT_ENRICHMENT_BUDGET, QueryConfiguration
from contributions.infrastructure.github_client import GitHubRestClient
from contributions.infrastructure.snapshot_store import DurableCache

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


def dump_to_csv(result, output_file: str):
    """Dump repositories to CSV."""
    rows = [repo.to_dict() for repo in result.repositories]
    if not rows:
        logger.warning("No data to dump")
        return

    with open(output_file, 'w', newline='', encoding='utf-8') as f:
        writer = csv.DictWriter(f, fieldnames=rows[0].keys())
        writer.writeheader()
        writer.writerows(rows)

    logger.info(f"Dumped {len(rows)} repositories to {output_file}")


def dump_to_json(result, output_file: str):
    """Dump repositories, totals and cache status to JSON."""
    with open(output_file, 'w', encoding='utf-8') as f:
        json.dump(result.to_dict(), f, indent=2, ensure_ascii=False)

    logger.info(f"Dumped {len(result.repositories)} repositories to {output_file}")


def main():
    """Export repositories to CSV and JSON."""
    memory_cache = MemoryCache()
    try:
        output_dir = os.getenv("OUTPUT_DIR", "artifacts")
        os.makedirs(output_dir, exist_ok=True)

        config = QueryConfiguration(
            scope=os.getenv("SCOPE", "all"),
            sort_by=os.getenv("SORT_BY", "stars"),
            include_private=os.getenv("INCLUDE_PRIVATE", "false").lower() == "true",
            identity=os.getenv("GITHUB_USER") or None,
            enrichment_budget=int(os.getenv("ENRICHMENT_BUDGET", str(DEFAULT_ENRICHMENT_BUDGET))),
        )

        service = ContributionsService(GitHubRestClient(), DurableCache(), memory_cache)
        result = service.get_repositories(config)

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        csv_file = os.path.join(output_dir, f"contributions_{result.identity}_{timestamp}.csv")
        json_file = os.path.join(output_dir, f"contributions_{result.identity}_{timestamp}.json")

        dump_to_csv(result, csv_file)
        dump_to_json(result, json_file)

        logger.info(f"Export completed. Files: {csv_file}, {json_file}")
        return 0
    except Exception as e:
        logger.error(f"Export failed: {e}", exc_info=True)
        return 1
    finally:
        memory_cache.shutdown(wait=False)


if __name__ == "__main__":
    sys.exit(main())
