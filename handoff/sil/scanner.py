"""
Handoff ownership scanner.

High-level interface for scanning source code for given-up ownership
violations. Integrates the full pipeline:
    Source Code -> Frontend -> SIL -> Gives-up points -> Ownership pass -> Report

Usage:
    from handoff.sil.scanner import OwnershipScanner

    scanner = OwnershipScanner(language="python")
    result = scanner.scan_file("actors.py")

    for finding in result.findings:
        print(f"{finding.location}: {finding.description}")
        for line in finding.trace:
            print(f"  {line}")
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple
from pathlib import Path
from enum import Enum
import json
import time

from handoff.sil.types import ExpCall
from handoff.sil.instructions import Call, GivesUp
from handoff.sil.procedure import Program
from handoff.sil.specs.actor_specs import GivesUpSpec, get_gives_up_specs
from handoff.sil.analyzers.context import AnalysisContext
from handoff.sil.analyzers.ownership import AnalysisError, GivenUpSymbol, create_pass
from handoff.sil.analyzers.reporter import ErrorReporter, OwnershipViolation


RULE_ID = "handoff/given-up-field"


class Severity(Enum):
    """Finding severity levels"""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"


@dataclass
class Finding:
    """A field that may still be used after its value was handed off"""
    symbol: str
    severity: Severity
    location: str
    line: int
    column: int
    description: str
    procedure: str
    given_up_at: str = ""
    trace: List[str] = field(default_factory=list)
    rule_id: str = RULE_ID

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization"""
        return {
            "rule_id": self.rule_id,
            "symbol": self.symbol,
            "severity": self.severity.value,
            "location": self.location,
            "line": self.line,
            "column": self.column,
            "description": self.description,
            "procedure": self.procedure,
            "given_up_at": self.given_up_at,
            "trace": self.trace,
        }


@dataclass
class ScanResult:
    """Result of scanning a file"""
    filename: str
    findings: List[Finding] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    scan_time_ms: float = 0.0
    lines_scanned: int = 0
    procedures_analyzed: int = 0
    gives_up_points: int = 0

    @property
    def has_findings(self) -> bool:
        return len(self.findings) > 0

    def to_dict(self) -> dict:
        return {
            "filename": self.filename,
            "findings": [f.to_dict() for f in self.findings],
            "errors": self.errors,
            "scan_time_ms": self.scan_time_ms,
            "lines_scanned": self.lines_scanned,
            "procedures_analyzed": self.procedures_analyzed,
            "gives_up_points": self.gives_up_points,
            "summary": {
                "total": len(self.findings),
            }
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    def to_sarif(self) -> dict:
        """Convert to SARIF format for GitHub/Azure DevOps integration"""
        rules = {}
        results = []

        for finding in self.findings:
            if finding.rule_id not in rules:
                rules[finding.rule_id] = {
                    "id": finding.rule_id,
                    "name": "GivenUpFieldOwnership",
                    "shortDescription": {"text": "Field used after its value was given up"},
                    "defaultConfiguration": {
                        "level": self._severity_to_sarif_level(finding.severity)
                    },
                }

            results.append({
                "ruleId": finding.rule_id,
                "level": self._severity_to_sarif_level(finding.severity),
                "message": {"text": finding.description},
                "locations": [{
                    "physicalLocation": {
                        "artifactLocation": {"uri": self.filename},
                        "region": {
                            "startLine": finding.line,
                            "startColumn": finding.column + 1,
                        }
                    }
                }],
            })

        return {
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
                "results": results,
            }]
        }

    def _severity_to_sarif_level(self, severity: Severity) -> str:
        mapping = {
            Severity.CRITICAL: "error",
            Severity.HIGH: "error",
            Severity.MEDIUM: "warning",
            Severity.LOW: "note",
            Severity.INFO: "note",
        }
        return mapping.get(severity, "warning")


# =============================================================================
# Gives-up point discovery
# =============================================================================

def discover_gives_up_points(context: AnalysisContext) -> List[GivenUpSymbol]:
    """
    Find every value handed off in the program.

    - each given-up argument of a GivesUp instruction (for an event
      construction such as Ping(self.payload), each of its arguments);
    - each argument passed to a procedure whose summary gives up the
      matching parameter.
    """
    points: Dict[Tuple, GivenUpSymbol] = {}
    program = context.program

    for proc in program.procedures.values():
        resolver = context.resolver(proc)
        for stmt, instr in proc.iter_statements():
            if not isinstance(instr, Call):
                continue

            if isinstance(instr, GivesUp):
                handed_off = instr.given_up_args()
            else:
                callee = program.resolve_callee(instr, proc)
                if callee is None:
                    continue
                summary = context.summary_of(callee)
                handed_off = [instr.args[i] for i in sorted(summary.gives_up_params)
                              if i < len(instr.args)]

            for arg in handed_off:
                parts = arg.args if isinstance(arg, ExpCall) else [arg]
                for part in parts:
                    for symbol in resolver.flowing_symbols(part):
                        key = (symbol, stmt)
                        if key not in points:
                            points[key] = GivenUpSymbol(symbol, stmt, proc.name)

    return list(points.values())


class OwnershipScanner:
    """
    Main ownership scanner.

    Parses source code, finds every gives-up point and runs the
    gives-up ownership pass on each, serially or on a thread pool.
    """

    def __init__(
        self,
        language: str = "python",
        jobs: int = 1,
        verbose: bool = False,
        gives_up_specs: Optional[Iterable[GivesUpSpec]] = None,
        pass_name: str = "gives-up",
    ):
        """
        Initialize the scanner.

        Args:
            language: Source language (only "python")
            jobs: Worker threads for analysis runs
            verbose: Enable verbose output
            gives_up_specs: Extra gives-up operations on top of the defaults
            pass_name: Ownership pass to run
        """
        self.language = language
        self.jobs = max(1, jobs)
        self.verbose = verbose
        self.pass_name = pass_name
        self.gives_up_specs = get_gives_up_specs(gives_up_specs)

        self.frontend = self._get_frontend(language)

    def _get_frontend(self, language: str):
        """Get frontend for specified language"""
        if language == "python":
            from handoff.sil.frontends.python_frontend import PythonFrontend
            return PythonFrontend(gives_up_specs=self.gives_up_specs)
        raise ValueError(f"Unsupported language: {language}")

    def scan(self, source_code: str, filename: str = "<unknown>") -> ScanResult:
        """
        Scan source code for given-up ownership violations.

        Args:
            source_code: Source code string
            filename: Filename for reporting

        Returns:
            ScanResult with findings
        """
        start_time = time.time()
        result = ScanResult(filename=filename)
        result.lines_scanned = source_code.count('\n') + 1

        try:
            if self.verbose:
                print(f"[Scanner] Parsing {filename}...")

            program = self.frontend.translate(source_code, filename)
            result.procedures_analyzed = len(program.procedures)

            if self.verbose:
                print(f"[Scanner] Found {len(program.procedures)} procedures")

            result.findings = self.analyze_program(program, result)

        except Exception as e:
            result.errors.append(f"Scan error: {str(e)}")
            if self.verbose:
                import traceback
                traceback.print_exc()

        result.scan_time_ms = (time.time() - start_time) * 1000

        if self.verbose:
            print(f"[Scanner] Scan complete: {len(result.findings)} findings")
            print(f"[Scanner] Time: {result.scan_time_ms:.2f}ms")

        return result

    def analyze_program(self, program: Program,
                        result: Optional[ScanResult] = None) -> List[Finding]:
        """Run the ownership pass on every gives-up point of a program"""
        context = AnalysisContext(program, self.gives_up_specs)
        reporter = ErrorReporter()

        points = discover_gives_up_points(context)
        if result is not None:
            result.gives_up_points = len(points)

        if self.verbose:
            print(f"[Scanner] Found {len(points)} gives-up points")

        def run(point: GivenUpSymbol) -> Tuple[GivenUpSymbol, List[OwnershipViolation], str]:
            ownership_pass = create_pass(self.pass_name, context, reporter)
            try:
                return point, ownership_pass.run(point), ""
            except AnalysisError as e:
                return point, [], f"Analysis error at {point}: {e}"

        if self.jobs > 1 and len(points) > 1:
            with ThreadPoolExecutor(max_workers=self.jobs) as executor:
                outcomes = list(executor.map(run, points))
        else:
            outcomes = [run(point) for point in points]

        findings = []
        seen = set()
        for point, violations, error in outcomes:
            if error and result is not None:
                result.errors.append(error)
            for violation in violations:
                key = violation.key()
                if key in seen:
                    continue
                seen.add(key)
                findings.append(self._to_finding(program, point, violation))

        if self.verbose:
            print(f"[Scanner] {len(reporter)} reports, {len(findings)} unique findings")

        findings.sort(key=lambda f: (f.line, f.column, f.symbol))
        return findings

    def _to_finding(self, program: Program, point: GivenUpSymbol,
                    violation: OwnershipViolation) -> Finding:
        proc = program.get_procedure(point.procedure)
        hand_off = proc.location_of(point.statement) if proc else None
        loc = violation.trace.location or hand_off

        instr = proc.instr_at(point.statement) if proc else None
        operation = instr.get_func_name() if isinstance(instr, Call) else "a hand-off"
        given_up_line = f" at line {hand_off.line}" if hand_off else ""

        return Finding(
            symbol=str(violation.symbol),
            severity=Severity.HIGH,
            location=str(loc) if loc else "",
            line=loc.line if loc else 0,
            column=loc.column if loc else 0,
            description=(f"'{violation.symbol}' may alias '{point.symbol}', given up by "
                         f"{operation}(){given_up_line}, and is read again before being reset"),
            procedure=point.procedure,
            given_up_at=str(hand_off) if hand_off else "",
            trace=violation.trace.lines(),
        )

    def scan_file(self, filepath: str) -> ScanResult:
        """
        Scan a source file.

        Args:
            filepath: Path to source file

        Returns:
            ScanResult with findings
        """
        path = Path(filepath)

        if not path.exists():
            result = ScanResult(filename=str(path))
            result.errors.append(f"File not found: {filepath}")
            return result

        source_code = path.read_text(encoding='utf-8')
        return self.scan(source_code, str(path))

    def scan_directory(self, dirpath: str, pattern: str = "**/*.py") -> List[ScanResult]:
        """
        Scan all matching files in a directory.

        Args:
            dirpath: Directory path
            pattern: Glob pattern for files

        Returns:
            List of ScanResult for each file
        """
        results = []
        dir_path = Path(dirpath)

        for filepath in sorted(dir_path.glob(pattern)):
            if filepath.is_file():
                results.append(self.scan_file(str(filepath)))

        return results


def scan_code(source_code: str, filename: str = "<unknown>",
              gives_up_specs: Optional[Iterable[GivesUpSpec]] = None) -> ScanResult:
    """
    Convenience function to scan source code.

    Args:
        source_code: Source code string
        filename: Filename for reporting
        gives_up_specs: Extra gives-up operations

    Returns:
        ScanResult with findings
    """
    scanner = OwnershipScanner(gives_up_specs=gives_up_specs)
    return scanner.scan(source_code, filename)


def scan_file(filepath: str,
              gives_up_specs: Optional[Iterable[GivesUpSpec]] = None) -> ScanResult:
    """
    Convenience function to scan a file.

    Args:
        filepath: Path to source file
        gives_up_specs: Extra gives-up operations

    Returns:
        ScanResult with findings
    """
    scanner = OwnershipScanner(gives_up_specs=gives_up_specs)
    return scanner.scan_file(filepath)
