#!/usr/bin/env python3
"""Script to list the repositories a GitHub user opened pull requests against."""

import argparse
import logging
import sys
import os

# Add repository root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from contributions.application.contributions_service import ContributionsService
from contributions.application.memory_cache import MemoryCache
from contributions.domain.errors import RemoteFetchError
from contributions.domain.query import DEFAULT_ENRICHMENT_BUDGET, QueryConfiguration, Scope, SortBy
from contributions.infrastructure.github_client import GitHubRestClient
from contributions.infrastructure.snapshot_store import DurableCache

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


def split_names(value: str) -> list:
    return [name.strip() for name in value.split(",") if name.strip()]


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="GitHub Contributions Fetcher",
        epilog=(
            "examples:\n"
            "  show_contributions.py -a --sort all -l 10\n"
            "  show_contributions.py -o -i vercel/hyper\n"
            "  show_contributions.py -x owner/repo1,owner/repo2 --private"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--scope", choices=[s.value for s in Scope], default=Scope.EXTERNAL.value,
                        help="Which repos to show (default: external)")
    parser.add_argument("-o", dest="scope", action="store_const", const=Scope.OWN.value,
                        help="Shortcut for --scope own")
    parser.add_argument("-e", dest="scope", action="store_const", const=Scope.EXTERNAL.value,
                        help="Shortcut for --scope external")
    parser.add_argument("-a", dest="scope", action="store_const", const=Scope.ALL.value,
                        help="Shortcut for --scope all")
    parser.add_argument("--sort", choices=[s.value for s in SortBy], default=SortBy.STARS.value,
                        help="Sort order (default: stars)")
    parser.add_argument("-l", "--limit", type=int, default=0, help="Limit number of results")
    parser.add_argument("-i", "--include", type=split_names, default=[],
                        help="Always include these repos (comma-separated)")
    parser.add_argument("-x", "--exclude", type=split_names, default=[],
                        help="Always exclude these repos (comma-separated)")
    parser.add_argument("-p", "--private", action="store_true",
                        help="Include private repos (excluded by default)")
    parser.add_argument("--user", default=None,
                        help="GitHub login to inspect (default: owner of GITHUB_TOKEN)")
    parser.add_argument("--budget", type=int, default=None,
                        help="Number of repos whose stars are fetched live "
                             "(default: ENRICHMENT_BUDGET or 20)")
    return parser.parse_args(argv)


def format_output(result, sort_by: SortBy) -> str:
    lines = [f"Found {len(result.repositories)} repositories:", ""]

    for repo in result.repositories:
        date = f"  {repo.last_contributed_at[:10]}" if sort_by == SortBy.RECENT else ""
        owned = " [own]" if repo.is_owned else ""
        lines.append(f"  {repo.stars:>8,} stars  {repo.pr_count:>3} PRs{date}  {repo.full_name}{owned}")

    lines.append("")
    lines.append(
        f"Total: {len(result.repositories)} repositories, "
        f"{result.total_stars:,} stars, {result.total_prs} PRs"
    )
    return "\n".join(lines)


def main(argv=None):
    """List contributed-to repositories."""
    args = parse_args(argv)
    memory_cache = MemoryCache()
    try:
        github_token = os.getenv("GITHUB_TOKEN")
        if not github_token and not args.user:
            logger.error("GITHUB_TOKEN not found. Set it or pass --user.")
            return 1
        if not github_token:
            logger.warning("GITHUB_TOKEN not found. Using unauthenticated requests (limited rate).")

        budget = args.budget
        if budget is None:
            budget = int(os.getenv("ENRICHMENT_BUDGET", str(DEFAULT_ENRICHMENT_BUDGET)))

        config = QueryConfiguration(
            scope=args.scope,
            sort_by=args.sort,
            include_private=args.private,
            limit=max(args.limit, 0),
            include=args.include,
            exclude=args.exclude,
            identity=args.user,
            enrichment_budget=max(budget, 0),
        )

        github_client = GitHubRestClient(token=github_token)
        service = ContributionsService(github_client, DurableCache(), memory_cache)
        result = service.get_repositories(config)

        print(format_output(result, config.sort_by))
        return 0

    except RemoteFetchError as e:
        logger.error(f"Fetching contributions failed: {e}")
        return 1
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1
    finally:
        memory_cache.shutdown(wait=False)


if __name__ == "__main__":
    sys.exit(main())
