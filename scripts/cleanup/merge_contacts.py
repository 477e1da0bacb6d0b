#!/usr/bin/env python3
"""
Duplicate contact cleanup: discover contacts sharing a normalized email or
phone and fold each group into its primary contact. Groups whose members
hold different emails are reported as needs_review and left alone.

Usage:
  # Dry-run (default): report duplicate groups without making changes
  python scripts/cleanup/merge_contacts.py --dry-run

  # Apply: merge every group, moving activities/deals/meetings/forms
  python scripts/cleanup/merge_contacts.py --apply

  # Write a JSON report
  python scripts/cleanup/merge_contacts.py --dry-run --output duplicates.json
"""

import argparse
import json
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

# Add repository root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from contact_resolution.config import get_settings
from contact_resolution.consolidation import ContactConsolidator
from contact_resolution.db import open_store
from contact_resolution.duplicates import find_duplicate_groups
from contact_resolution.errors import ReassignmentError
from contact_resolution.logging import get_logger, setup_logging
from contact_resolution.models import DuplicateGroup
from contact_resolution.repository import ContactStore

logger = get_logger("cleanup.merge_contacts")


def merge_group(
    consolidator: ContactConsolidator,
    group: DuplicateGroup,
    dry_run: bool = True,
) -> Dict[str, Any]:
    primary_id = group.primary.id
    secondary_ids = [contact.id for contact in group.duplicates]
    result: Dict[str, Any] = {
        "primary_id": primary_id,
        "secondary_ids": secondary_ids,
        "keys": group.keys,
    }
    if group.needs_review:
        # Distinct emails behind a shared phone: leave the call to a person
        result["status"] = "needs_review"
        return result
    if dry_run:
        result["status"] = "would_merge"
        return result

    try:
        contact = consolidator.merge_contacts(primary_id, secondary_ids)
    except ReassignmentError as exc:
        result.update(status="partial", merged_ids=exc.merged_ids, failed_ids=exc.failed_ids, error=str(exc))
        return result
    except Exception as exc:
        logger.exception("merge_group_failed", contact_id=primary_id, error=str(exc))
        result.update(status="error", error=str(exc))
        return result

    result.update(status="merged", lead_source=contact.lead_source, sources_count=contact.sources_count)
    return result


def run_cleanup(
    store: ContactStore,
    *,
    apply: bool = False,
    limit: Optional[int] = None,
    verbose: bool = False,
) -> Dict[str, Any]:
    groups = find_duplicate_groups(store, limit=limit)
    consolidator = ContactConsolidator(store)

    results: List[Dict[str, Any]] = []
    merged_count = 0
    error_count = 0
    review_count = 0
    for i, group in enumerate(groups, 1):
        result = merge_group(consolidator, group, dry_run=not apply)
        results.append({"group": i, "merge_result": result})
        status = result["status"]
        if status == "merged":
            merged_count += 1
        elif status in ("error", "partial"):
            error_count += 1
        elif status == "needs_review":
            review_count += 1
        if verbose:
            print(
                f"[{i}/{len(groups)}] {group.primary.id} <- {result['secondary_ids']} {status}",
                flush=True,
            )

    return {
        "timestamp": datetime.now().isoformat(),
        "mode": "apply" if apply else "dry-run",
        "total_groups": len(groups),
        "merged": merged_count,
        "errors": error_count,
        "needs_review": review_count,
        "results": results,
    }


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Discover and merge duplicate contacts by normalized email/phone"
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--dry-run",
        action="store_true",
        help="Report what would be merged without making changes (default)",
    )
    mode.add_argument("--apply", action="store_true", help="Actually perform the merges")
    parser.add_argument("--output", type=str, default=None, help="Output file path for JSON report")
    parser.add_argument("--limit", type=int, default=None, help="Limit number of duplicate groups to process")
    parser.add_argument(
        "--database-url",
        type=str,
        default=None,
        help="Database URL (or use DATABASE_URL env var)",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose output")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(get_settings().log_level)

    mode = "apply" if args.apply else "dry-run"
    print(f"Contact Merge Tool - {mode.upper()} mode")
    if args.limit:
        print(f"Limit: {args.limit} groups")
    print()

    try:
        with open_store(args.database_url) as store:
            report = run_cleanup(store, apply=args.apply, limit=args.limit, verbose=args.verbose)
    except Exception as e:
        logger.exception("merge_contacts_failed", error=str(e))
        print(f"Error: {str(e)}", file=sys.stderr)
        return 1

    print()
    print("=" * 60)
    print(f"Total groups: {report['total_groups']}")
    print(f"Merged: {report['merged']}")
    print(f"Errors: {report['errors']}")
    print(f"Needs review: {report['needs_review']}")
    print(f"Mode: {mode.upper()}")

    if args.output:
        output_path = Path(args.output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, "w") as f:
            json.dump(report, f, indent=2, default=str)
        print(f"Report written to: {output_path}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
