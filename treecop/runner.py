"""
CLI runner for the treecop engine.

This module provides the main CLI entry point for loading the Ruby adapter,
parsing files, running rules, correcting offenses and printing results.
"""

import argparse
import concurrent.futures
import fnmatch
import json
import logging
import os
import sys
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from .commissioner import Commissioner
from .config import EngineConfig, find_config_file, load_config
from .corrector import correct_offenses, unified_diff
from .errors import CorrectionError, DuplicateRuleIdError, PatternSyntaxError
from .nodes import LineIndex
from .registry import Registry, default_registry
from .ruby_adapter import default_ruby_adapter
from .schema import (ENGINE_VERSION, PROTOCOL_VERSION, failure_to_json, offenses_to_json,
                     validate_runner_output)
from .suppressions import filter_suppressed_offenses
from .types import LanguageAdapter, Offense, RuleFailure

logger = logging.getLogger(__name__)


@dataclass
class FileReport:
    """Everything the runner learned about one file."""
    path: str
    text: str = ""
    offenses: List[Offense] = field(default_factory=list)
    failures: List[RuleFailure] = field(default_factory=list)
    # Corrected text when fixing was requested and changed something
    corrected: Optional[str] = None
    applied: List[Offense] = field(default_factory=list)
    # Read or parse problem; rules were not run
    error: Optional[str] = None
    # Rejected correction; lint results are still valid
    fix_error: Optional[str] = None
    parse_ms: float = 0.0
    rules_ms: float = 0.0

    @property
    def remaining(self) -> List[Offense]:
        """Offenses not resolved by an applied correction."""
        applied = {id(offense) for offense in self.applied}
        return [offense for offense in self.offenses if id(offense) not in applied]


def is_excluded(path: str, patterns: List[str], root: Optional[str] = None) -> bool:
    """Check a path, taken relative to the analysis root, against the exclude globs.

    The root is the configuration file's directory, or the working directory
    when no configuration file is in use. Directories above the root never
    take part in matching.
    """
    if not patterns:
        return False
    relative = os.path.relpath(os.path.abspath(path), os.path.abspath(root or os.getcwd()))
    relative = relative.replace(os.sep, "/")
    return any(fnmatch.fnmatch(relative, pattern) for pattern in patterns)


def collect_files(paths: List[str], adapter: LanguageAdapter, exclude: List[str],
                  root: Optional[str] = None) -> List[str]:
    """Collect files to analyze, dropping excluded paths and duplicates."""
    files = []
    seen = set()
    for file_path in adapter.list_files(paths):
        key = os.path.abspath(file_path)
        if key in seen or is_excluded(file_path, exclude, root):
            continue
        seen.add(key)
        files.append(file_path)
    return files


def analyze_file(file_path: str, commissioner: Commissioner, adapter: LanguageAdapter,
                 config: EngineConfig, fix: bool = False,
                 content: Optional[str] = None) -> FileReport:
    """Analyze a single file and, if asked, compute its corrected text.

    Args:
        file_path: Path to the file (used for reporting even if content is provided)
        commissioner: Commissioner holding the enabled rules
        adapter: Language adapter used to parse the file
        config: Engine configuration
        fix: Whether to compose and apply corrections
        content: Optional file content (if None, reads from disk)
    """
    report = FileReport(path=file_path)

    if content is None:
        try:
            # newline="" keeps byte offsets aligned with the file on disk
            with open(file_path, "r", encoding="utf-8", newline="") as f:
                content = f.read()
        except (OSError, UnicodeDecodeError) as e:
            report.error = f"Failed to read file: {e}"
            logger.warning("Failed to read %s: %s", file_path, e)
            return report
    report.text = content

    parse_start = time.time()
    document = adapter.parse(content, file_path)
    report.parse_ms = (time.time() - parse_start) * 1000
    if document is None:
        report.error = f"No {adapter.language_id} parser available"
        return report
    if document.syntax_errors:
        line, column = document.syntax_errors[0]
        report.error = f"Syntax error at {line}:{column}"
        logger.warning("Skipping %s: syntax error at %d:%d", file_path, line, column)
        return report

    rules_start = time.time()
    investigation = commissioner.investigate(document)
    report.rules_ms = (time.time() - rules_start) * 1000
    report.failures = investigation.failures

    # Suppressed offenses are neither reported nor corrected
    offenses = filter_suppressed_offenses(investigation.ordered_offenses(), content)

    if fix:
        try:
            result = correct_offenses(content, offenses, investigation.rule_order)
        except CorrectionError as e:
            report.fix_error = str(e)
            logger.warning("Not correcting %s: %s", file_path, e)
        else:
            report.applied = result.applied
            if result.changed:
                report.corrected = result.text

    offenses = investigation.sorted_by_location(offenses)
    limit = config.max_offenses_per_file
    if limit and len(offenses) > limit:
        logger.debug("Truncating %d offense(s) in %s to %d", len(offenses), file_path, limit)
        offenses = offenses[:limit]
    report.offenses = offenses
    return report


def run_analysis_parallel(files: List[str], commissioner: Commissioner, adapter: LanguageAdapter,
                          config: EngineConfig, jobs: int, fix: bool = False) -> List[FileReport]:
    """Run analysis on files with optional parallelization; results keep file order."""
    if jobs <= 1:
        return [analyze_file(file_path, commissioner, adapter, config, fix) for file_path in files]

    with concurrent.futures.ThreadPoolExecutor(max_workers=jobs) as executor:
        return list(executor.map(
            lambda file_path: analyze_file(file_path, commissioner, adapter, config, fix),
            files,
        ))


def _failures_json(reports: List[FileReport]) -> List[Dict[str, Any]]:
    failures = []
    for report in reports:
        if report.error:
            failures.append(failure_to_json(None, report.path, report.error))
        for failure in report.failures:
            failures.append(failure_to_json(failure.rule, failure.file, failure.error,
                                            failure.line, failure.column))
        if report.fix_error:
            failures.append(failure_to_json(None, report.path, report.fix_error))
    return failures


def format_output(reports: List[FileReport], rules_count: int, metrics: Dict[str, float],
                  format_type: str) -> str:
    """Format output according to specified format."""
    offenses = [offense for report in reports for offense in report.offenses]

    if format_type == "json":
        text_cache = {str(Path(report.path).resolve()): report.text for report in reports}
        output = {
            "treecop.protocol": PROTOCOL_VERSION,
            "engine_version": ENGINE_VERSION,
            "files_scanned": len(reports),
            "rules_run": rules_count,
            "offenses": offenses_to_json(offenses, text_cache),
            "failures": _failures_json(reports),
            "metrics": metrics,
        }
        return json.dumps(output, indent=2)

    elif format_type == "pretty":
        lines = [f"Inspected {len(reports)} files with {rules_count} rules", ""]
        corrected_count = 0

        for report in reports:
            if report.error:
                lines.append(f"{report.path}: error: {report.error}")
            if not report.offenses and not report.failures and not report.fix_error:
                continue
            applied = {id(offense) for offense in report.applied}
            index = None
            for offense in report.offenses:
                if index is None:
                    index = LineIndex(report.text.encode("utf-8"))
                line, col = index.position(offense.start_byte)
                marker = ""
                if id(offense) in applied:
                    marker = "[Corrected] "
                    corrected_count += 1
                elif offense.edits:
                    marker = "[Correctable] "
                lines.append(f"{report.path}:{line}:{col + 1}: {offense.severity}: "
                             f"{marker}{offense.message} ({offense.rule})")
            for failure in report.failures:
                lines.append(failure.describe())
            if report.fix_error:
                lines.append(f"{report.path}: correction rejected: {report.fix_error}")

        total = sum(len(report.offenses) for report in reports)
        summary = f"{total} offense(s) detected"
        if corrected_count:
            summary += f", {corrected_count} corrected"
        lines.append("")
        lines.append(summary)
        lines.append(f"Total time: {metrics['total_ms']:.1f}ms")
        return "\n".join(lines)

    else:
        raise ValueError(f"Unknown format: {format_type}")


def build_commissioner(config: EngineConfig, rule_patterns: Optional[List[str]] = None,
                       registry: Optional[Registry] = None) -> Commissioner:
    """Select the enabled Ruby rules and wrap them in a commissioner."""
    registry = registry if registry is not None else default_registry()
    patterns = rule_patterns or config.enabled_rules
    rules = [rule for rule in registry.get_enabled_rules(patterns, config.disabled_rules)
             if "ruby" in rule.meta.langs]
    return Commissioner(rules, config)


def write_corrections(reports: List[FileReport]) -> int:
    """Write corrected text back to disk; returns the number of files written."""
    written = 0
    for report in reports:
        if report.corrected is None:
            continue
        with open(report.path, "w", encoding="utf-8", newline="") as f:
            f.write(report.corrected)
        written += 1
    return written


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="treecop",
        description="Static analysis and autocorrection for Ruby source",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  treecop app/ spec/
  treecop --rules "layout.*" --fix lib/
  treecop --diff --format pretty spec/models/user_spec.rb
        """,
    )

    parser.add_argument("paths", nargs="*", default=["."],
                        help="Files or directories to analyze (default: .)")
    parser.add_argument("--rules",
                        help="Comma-separated rule ids or patterns (default: enabled_rules from config)")
    parser.add_argument("--config", help="Path to configuration file")
    parser.add_argument("--fix", "-a", action="store_true",
                        help="Apply corrections and write files back")
    parser.add_argument("--diff", action="store_true",
                        help="Print corrections as a unified diff instead of writing them")
    parser.add_argument("--format", choices=["json", "pretty"], default="pretty",
                        help="Output format (default: pretty)")
    parser.add_argument("--jobs", type=int, default=0,
                        help="Number of parallel jobs (0=auto, 1=sequential, N=parallel)")
    parser.add_argument("--validate", action="store_true",
                        help="Validate JSON output against schema")
    parser.add_argument("--list-rules", action="store_true",
                        help="List available rules and exit")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Enable verbose output")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    total_start = time.time()

    config_path = args.config or find_config_file(args.paths[0])
    config = load_config(config_path)
    logger.debug("Using config: %s", config_path or "defaults")

    try:
        registry = default_registry()
        rule_patterns = [p.strip() for p in args.rules.split(",")] if args.rules else None
        commissioner = build_commissioner(config, rule_patterns, registry)
    except (PatternSyntaxError, DuplicateRuleIdError) as e:
        logger.error("Failed to load rules: %s", e)
        return 2

    if args.list_rules:
        for rule in registry.get_all_rules():
            flag = " (autocorrect)" if rule.meta.autocorrect else ""
            print(f"{rule.meta.id}{flag}: {rule.meta.description}")
        return 0

    rules = commissioner.rules
    logger.debug("Running %d rules: %s", len(rules), [r.meta.id for r in rules])

    adapter = default_ruby_adapter
    if not adapter.available:
        logger.error("tree-sitter-ruby is not installed")
        return 2

    root = os.path.dirname(os.path.abspath(config_path)) if config_path else os.getcwd()
    files = collect_files(args.paths, adapter, config.exclude, root)
    logger.debug("Found %d files to analyze", len(files))
    if not files:
        print("No files found to analyze", file=sys.stderr)
        return 2

    jobs = args.jobs
    if jobs == 0:
        jobs = min(4, len(files), os.cpu_count() or 1)

    fix = args.fix or args.diff
    reports = run_analysis_parallel(files, commissioner, adapter, config, jobs, fix)

    metrics = {
        "parse_ms": sum(report.parse_ms for report in reports),
        "rules_ms": sum(report.rules_ms for report in reports),
        "total_ms": (time.time() - total_start) * 1000,
    }

    if args.diff:
        for report in reports:
            if report.corrected is not None:
                sys.stdout.write(unified_diff(report.path, report.text, report.corrected))
    elif fix:
        written = write_corrections(reports)
        logger.debug("Wrote corrections to %d file(s)", written)

    output = format_output(reports, len(rules), metrics, args.format)

    if args.validate and args.format == "json":
        errors = validate_runner_output(json.loads(output))
        if errors:
            print("JSON validation errors:", file=sys.stderr)
            for error in errors:
                print(f"  {error}", file=sys.stderr)
            return 2

    if not args.diff:
        print(output)

    if any(report.error or report.fix_error for report in reports):
        return 1
    if fix:
        return 1 if any(report.remaining for report in reports) else 0
    return 1 if any(report.offenses for report in reports) else 0


if __name__ == "__main__":
    sys.exit(main())
