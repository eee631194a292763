#!/usr/bin/env python3
"""
Handoff ownership scanner CLI.

Command-line interface for finding fields that may still alias a value
after it was handed to another actor, queue or task.

Usage:
    # Scan a single file
    python -m handoff scan actors.py

    # Scan with SARIF output (for GitHub Actions)
    python -m handoff scan actors.py --format sarif -o results.sarif

    # Scan a directory with four worker threads
    python -m handoff scan src/ --pattern "**/*.py" -j 4

    # Treat a project-specific call as a hand-off of its second argument
    python -m handoff scan src/ --gives-up dispatch:1
"""

import argparse
import sys
import json
from pathlib import Path
from typing import List

from handoff.sil.scanner import OwnershipScanner, ScanResult
from handoff.sil.specs.actor_specs import GivesUpSpec, parse_gives_up


def gives_up_argument(text: str) -> GivesUpSpec:
    """argparse type for --gives-up entries"""
    try:
        return parse_gives_up(text)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e))


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser"""
    parser = argparse.ArgumentParser(
        prog="handoff",
        description="Handoff - find fields still in use after their value was given up",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Scan command
    scan_parser = subparsers.add_parser("scan", help="Scan files for given-up ownership violations")
    scan_parser.add_argument(
        "target",
        help="File or directory to scan"
    )
    scan_parser.add_argument(
        "-l", "--language",
        default="python",
        choices=["python"],
        help="Source language (default: python)"
    )
    scan_parser.add_argument(
        "-p", "--pattern",
        default="**/*.py",
        help="Glob pattern for directory scan (default: **/*.py)"
    )
    scan_parser.add_argument(
        "-f", "--format",
        default="text",
        choices=["text", "json", "sarif"],
        help="Output format (default: text)"
    )
    scan_parser.add_argument(
        "-o", "--output",
        help="Output file (default: stdout)"
    )
    scan_parser.add_argument(
        "-j", "--jobs",
        type=int,
        default=1,
        help="Worker threads for analysis runs (default: 1)"
    )
    scan_parser.add_argument(
        "--gives-up",
        dest="gives_up",
        action="append",
        default=[],
        type=gives_up_argument,
        metavar="NAME:POS",
        help="Extra gives-up operation; N+ means argument N and all later ones (repeatable)"
    )
    scan_parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Verbose output"
    )
    scan_parser.add_argument(
        "--fail-on",
        choices=["any", "none"],
        default="any",
        help="Exit with error if findings are reported (default: any)"
    )

    return parser


def format_text_result(result: ScanResult) -> str:
    """Format scan result as human-readable text"""
    lines = []

    # Header
    lines.append(f"\n{'='*60}")
    lines.append(f"Handoff Ownership Scan: {result.filename}")
    lines.append(f"{'='*60}")

    # Stats
    lines.append(f"\nLines scanned: {result.lines_scanned}")
    lines.append(f"Procedures analyzed: {result.procedures_analyzed}")
    lines.append(f"Gives-up points: {result.gives_up_points}")
    lines.append(f"Scan time: {result.scan_time_ms:.2f}ms")

    if result.errors:
        lines.append(f"\nErrors:")
        for error in result.errors:
            lines.append(f"  ❌ {error}")

    if result.findings:
        lines.append(f"\nFindings: {len(result.findings)}")
        lines.append("-" * 40)

        for i, finding in enumerate(result.findings, 1):
            lines.append(f"\n{i}. [{finding.severity.value.upper()}] {finding.rule_id}")
            lines.append(f"   Location: {finding.location}")
            lines.append(f"   Field: {finding.symbol}")
            lines.append(f"   Function: {finding.procedure}")
            lines.append(f"   Description: {finding.description}")
            if finding.trace:
                lines.append(f"   Trace:")
                for step in finding.trace:
                    lines.append(f"     {step}")
    else:
        lines.append(f"\n✅ No given-up fields in use!")

    lines.append(f"\n{'='*60}\n")

    return "\n".join(lines)


def format_json_result(results: List[ScanResult]) -> str:
    """Format results as JSON"""
    if len(results) == 1:
        return results[0].to_json()

    combined = {
        "files": [r.to_dict() for r in results],
        "summary": {
            "files_scanned": len(results),
            "total_findings": sum(len(r.findings) for r in results),
            "files_with_errors": sum(1 for r in results if r.errors),
        }
    }
    return json.dumps(combined, indent=2)


def format_sarif_result(results: List[ScanResult]) -> str:
    """Format results as SARIF"""
    if len(results) == 1:
        return json.dumps(results[0].to_sarif(), indent=2)

    # Combine multiple files into one SARIF run
    all_results = []
    rules = {}

    for result in results:
        run = result.to_sarif()["runs"][0]
        all_results.extend(run.get("results", []))
        for rule in run["tool"]["driver"].get("rules", []):
            rules[rule["id"]] = rule

    combined = {
        "$schema": "https://raw.githubusercontent.com/oasis-tcs/sarif-spec/master/Schemata/sarif-schema-2.1.0.json",
        "version": "2.1.0",
        "runs": [{
            "tool": {
                "driver": {
                    "name": "handoff",
                    "version": "0.1.0",
                    "rules": list(rules.values()),
                }
            },
            "results": all_results,
        }]
    }
    return json.dumps(combined, indent=2)


def should_fail(results: List[ScanResult], fail_on: str) -> bool:
    """Determine if scan should fail based on findings"""
    if fail_on == "none":
        return False
    return any(r.findings for r in results)


def write_output(output: str, path: str = None, append: bool = False) -> None:
    if path:
        with open(path, 'a' if append else 'w') as f:
            f.write(output)
    else:
        print(output)


def main(argv: List[str] = None) -> int:
    """Main CLI entry point"""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    if args.command == "scan":
        return cmd_scan(args)

    return 0


def cmd_scan(args) -> int:
    """Execute scan command"""
    target = Path(args.target)

    if not target.exists():
        print(f"Error: Target not found: {args.target}", file=sys.stderr)
        return 1

    try:
        scanner = OwnershipScanner(
            language=args.language,
            jobs=args.jobs,
            verbose=args.verbose,
            gives_up_specs=args.gives_up,
        )
    except ImportError as e:
        print(f"Error: {e}", file=sys.stderr)
        print("Install tree-sitter: pip install tree-sitter tree-sitter-python", file=sys.stderr)
        return 1

    if target.is_file():
        results = [scanner.scan_file(str(target))]
    else:
        results = scanner.scan_directory(str(target), args.pattern)

    if not results:
        print("No files found to scan.", file=sys.stderr)
        return 1

    if args.format == "text":
        if args.output:
            Path(args.output).write_text("")
        for result in results:
            write_output(format_text_result(result), args.output, append=True)
    elif args.format == "json":
        write_output(format_json_result(results), args.output)
    elif args.format == "sarif":
        write_output(format_sarif_result(results), args.output)

    if should_fail(results, args.fail_on):
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
