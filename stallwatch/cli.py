"""
Command-line interface for the stalled-project pipeline.

Provides subcommands for running extraction + analysis, listing the
source catalog and checking source credentials.
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from .config import DEFAULT_CRITERIA_PATH, DEFAULT_SOURCES_PATH
from .config.secrets import check_secrets
from .errors import ConfigurationError
from .ingest.catalog import list_sources, load_catalog
from .ingest.health import load_health_tracker, save_health_tracker
from .logging_config import configure_logging
from .pipeline import StallWatchPipeline


def cmd_run(args: argparse.Namespace) -> int:
    """Run extraction and analysis once."""
    try:
        health = load_health_tracker(args.health_file) if args.health_file else None
        pipeline = StallWatchPipeline.from_defaults(
            config_path=args.config,
            sources_path=args.sources,
            criteria_path=args.criteria,
            health_tracker=health,
        )
    except (ConfigurationError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    run = pipeline.run()

    succeeded = sum(1 for r in run.extraction_results if r.success)
    print(f"Sources: {succeeded}/{len(run.extraction_results)} extracted")
    for result in run.extraction_results:
        mark = "OK  " if result.success else "FAIL"
        line = f"  [{mark}] {result.source_id}: {result.records_validated}/{result.records_extracted} records"
        if not result.success and result.errors:
            line += f" ({result.errors[0]})"
        print(line)

    stats = run.statistics
    print(f"\nProjects analyzed: {stats.total_projects}")
    print(f"  Confirmed Stalled: {stats.confirmed_stalled}")
    print(f"  Likely Stalled:    {stats.likely_stalled}")
    print(f"  At Risk:           {stats.at_risk}")
    print(f"  Active:            {stats.active}")
    print(f"  Average score: {stats.average_score}  Average confidence: {stats.average_confidence}")

    if args.verbose:
        for analysis in run.analyses:
            print(f"  {analysis.project_id} [{analysis.stalled_score}] {analysis.stalled_status.value}: "
                  f"{analysis.project_name}")

    if args.output:
        output_path = Path(args.output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, 'w') as f:
            json.dump(run.to_dict(include_records=args.include_records), f, indent=2)
        print(f"\nResults written to {output_path}")

    if args.health_file:
        save_health_tracker(pipeline.health_tracker, args.health_file)

    return 0


def cmd_sources(args: argparse.Namespace) -> int:
    """List the configured sources."""
    try:
        catalog = load_catalog(Path(args.sources))
    except (ConfigurationError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps(list_sources(catalog), indent=2))
        return 0

    print(f"{'ID':<24} {'METHOD':<12} {'TRUST':>5}  {'FREQUENCY':<10} NAME")
    for s in list_sources(catalog):
        print(f"{s['id']:<24} {s['extraction_method']:<12} {s['trust_score']:>5g}  "
              f"{s['update_frequency']:<10} {s['name']}")
    return 0


def cmd_check_secrets(args: argparse.Namespace) -> int:
    """Report credential status per source; non-zero exit if any are missing."""
    try:
        catalog = load_catalog(Path(args.sources))
    except (ConfigurationError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    status = check_secrets(catalog)
    for source_id, state in status.items():
        print(f"  {source_id:<24} {state}")

    missing = [k for k, v in status.items() if v == "MISSING"]
    if missing:
        print(f"\n{len(missing)} source(s) missing credentials", file=sys.stderr)
        return 1
    return 0


def main(argv: Optional[list] = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="stallwatch",
        description="Stalled infrastructure project detection",
    )
    parser.add_argument(
        "--sources",
        default=str(DEFAULT_SOURCES_PATH),
        help="Source catalog YAML"
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Verbose output"
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # run command
    run_parser = subparsers.add_parser("run", help="Extract all sources and analyze projects")
    run_parser.add_argument("--config", help="Pipeline settings YAML")
    run_parser.add_argument("--criteria", default=str(DEFAULT_CRITERIA_PATH), help="Scoring criteria YAML")
    run_parser.add_argument("--output", "-o", help="Output file (JSON)")
    run_parser.add_argument("--include-records", action="store_true",
                            help="Include validated records in the JSON output")
    run_parser.add_argument("--health-file", help="Source health JSON to load and update")
    run_parser.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                            default=argparse.SUPPRESS, help="Logging level")
    run_parser.set_defaults(func=cmd_run)

    # sources command
    sources_parser = subparsers.add_parser("sources", help="List configured sources")
    sources_parser.add_argument("--json", action="store_true", help="Print as JSON")
    sources_parser.set_defaults(func=cmd_sources)

    # check-secrets command
    secrets_parser = subparsers.add_parser("check-secrets", help="Check source credentials")
    secrets_parser.set_defaults(func=cmd_check_secrets)

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    configure_logging(getattr(logging, args.log_level))
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
