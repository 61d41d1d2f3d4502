"""Formats probe results as colored terminal output or structured JSON.

Two output modes are supported:

- **Terminal**: ANSI-colored output grouped by phase, with a summary line
  showing pass/fail/warn/skip/error counts, followed by a prioritised fix
  summary when failures are present.
- **JSON**: machine-readable output with ``summary``, ``results``, and
  ``issues`` keys, suitable for CI pipelines.
"""

import json
import sys
from typing import Any, Dict, List, Tuple


# ---------------------------------------------------------------------------
# Known issue patterns
# Each entry: (priority, title, message_substring, rationale, fix)
#
# message_substring: matched case-insensitively against ProbeResult.message
# ---------------------------------------------------------------------------
_KNOWN_ISSUES: List[Tuple[str, str, str, str, str]] = [
    (
        "P1",
        "Unsupported methods are not rejected with 405",
        "Request should have failed with 405 error",
        "A handler that silently accepts a method it does not implement can apply "
        "the request to the wrong resource or drop it without telling the client.",
        "Return 405 Method Not Allowed for any method without a registered handler",
    ),
    (
        "P2",
        "Missing Allow header",
        "Allow header should be present",
        "RFC 9110 requires Allow on every 405 response; clients cannot discover "
        "the correct method without it.",
        "Send Allow: <methods> on 405 responses and on OPTIONS responses",
    ),
    (
        "P3",
        "Allow header lists the wrong methods",
        "Allow header methods",
        "An Allow header that disagrees with the router misleads clients into "
        "retrying with methods that will also fail.",
        "Derive the Allow header from the same method table the router dispatches on",
    ),
    (
        "P4",
        "Wrong status code for method handling",
        "Expected status",
        "Clients and proxies branch on the status code; 400 or 404 for a method "
        "error hides the real cause.",
        "Use 200 for OPTIONS on a known endpoint and 405 for an unsupported method",
    ),
    (
        "P5",
        "405 body does not explain the rejected method",
        "body should contain",
        "Operators debugging a failed call rely on the error body naming the uri, "
        "method, and allowed methods.",
        "Include 'Incorrect HTTP method for uri [...] and method [...], allowed: [...]' in the body",
    ),
]


class ProbeResult:
    """A single conformance check result.

    Attributes:
        name:    Human-readable check name (e.g. ``OPTIONS /_tasks status``).
        status:  One of PASS, FAIL, WARN, SKIP, ERROR.
        message: Optional detail about the outcome.
        details: Optional extended detail (not shown in terminal, included in JSON).
        phase:   Phase label for grouping in output.

    Not named ``Test*`` so pytest does not try to collect it.
    """

    PASS = "pass"
    FAIL = "fail"
    WARN = "warn"
    SKIP = "skip"
    ERROR = "error"

    def __init__(
        self,
        name: str,
        status: str,
        message: str = "",
        details: str = "",
        phase: str = "",
    ):
        self.name = name
        self.status = status
        self.message = message
        self.details = details
        self.phase = phase

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict for JSON output.  Omits empty fields."""
        d: Dict[str, Any] = {
            "name": self.name,
            "status": self.status,
        }
        if self.message:
            d["message"] = self.message
        if self.details:
            d["details"] = self.details
        if self.phase:
            d["phase"] = self.phase
        return d

    def __repr__(self) -> str:
        return f"<ProbeResult {self.status} {self.name!r}>"


def _colorize(text: str, color: str) -> str:
    """Apply ANSI color codes.  Returns plain text when stdout is not a TTY."""
    colors = {
        "red": "\033[91m",
        "green": "\033[92m",
        "yellow": "\033[93m",
        "bold": "\033[1m",
        "dim": "\033[2m",
        "reset": "\033[0m",
    }
    if not sys.stdout.isatty():
        return text
    return f"{colors.get(color, '')}{text}{colors['reset']}"


# Maps ProbeResult status to (display label, ANSI color)
_STATUS_SYMBOLS = {
    ProbeResult.PASS: ("PASS", "bold"),
    ProbeResult.FAIL: ("FAIL", "red"),
    ProbeResult.WARN: ("WARN", "dim"),
    ProbeResult.SKIP: ("SKIP", "dim"),
    ProbeResult.ERROR: ("ERR ", "red"),
}


def count_by_status(results: List[ProbeResult]) -> Dict[str, int]:
    """Tally results per status, always including every status key."""
    counts = {s: 0 for s in _STATUS_SYMBOLS}
    for r in results:
        counts[r.status] = counts.get(r.status, 0) + 1
    return counts


def has_failures(results: List[ProbeResult]) -> bool:
    """True if any result is FAIL or ERROR.  Warnings and skips do not count."""
    return any(r.status in (ProbeResult.FAIL, ProbeResult.ERROR) for r in results)


def build_fix_summary(results: List[ProbeResult]) -> List[Dict[str, Any]]:
    """Derive a prioritised list of distinct issues from probe failures.

    Each entry contains priority label, title, fix hint, and count of
    affected checks.  Only issues with at least one affected check are returned.
    """
    failures = [r for r in results if r.status in (ProbeResult.FAIL, ProbeResult.ERROR)]
    issues = []
    matched_ids: set = set()
    for priority, title, msg_substr, rationale, fix in _KNOWN_ISSUES:
        affected = [
            r for r in failures
            if msg_substr.lower() in r.message.lower()
        ]
        if affected:
            matched_ids.update(id(r) for r in affected)
            issues.append({
                "priority": priority,
                "title": title,
                "rationale": rationale,
                "fix": fix,
                "affected_tests": len(affected),
            })

    unmatched = [r for r in failures if id(r) not in matched_ids]
    if unmatched:
        issues.append({
            "priority": "?",
            "title": f"{len(unmatched)} failure(s) not matched to a known root cause",
            "rationale": "These failures did not match any known issue pattern and require individual investigation.",
            "fix": "Review the individual check output above for specific error messages.",
            "affected_tests": len(unmatched),
        })

    return issues


def print_results(
    results: List[ProbeResult],
    json_output: bool = False,
    target: str = "",
    version: str = "",
    timestamp: str = "",
):
    """Print the full probe report in terminal or JSON format."""
    if json_output:
        _print_json(results, target=target, version=version, timestamp=timestamp)
    else:
        _print_terminal(results, target=target, version=version, timestamp=timestamp)


def _print_terminal(
    results: List[ProbeResult],
    target: str = "",
    version: str = "",
    timestamp: str = "",
):
    """Render results as ANSI-colored terminal output, grouped by phase."""
    current_phase = ""
    counts = count_by_status(results)
    passed = counts[ProbeResult.PASS]
    failed = counts[ProbeResult.FAIL]
    warned = counts[ProbeResult.WARN]
    skipped = counts[ProbeResult.SKIP]
    errored = counts[ProbeResult.ERROR]

    print()
    print(_colorize("REST Method Handling Probe", "bold"))
    print(_colorize("=" * 50, "dim"))
    meta_parts = []
    if version:
        meta_parts.append(f"rest-sanity {version}")
    if target:
        meta_parts.append(target)
    if timestamp:
        meta_parts.append(timestamp)
    if meta_parts:
        print(_colorize("  " + "  |  ".join(meta_parts), "dim"))

    for result in results:
        if result.phase and result.phase != current_phase:
            current_phase = result.phase
            print()
            print(_colorize(f"  {current_phase}", "bold"))
            print(_colorize("  " + "-" * 40, "dim"))

        symbol, color = _STATUS_SYMBOLS.get(result.status, ("??? ", "dim"))
        print(f"  [{_colorize(symbol, color)}] {result.name}")
        if result.message:
            print(f"         {_colorize(result.message, 'dim')}")

    print()
    print(_colorize("=" * 50, "dim"))
    summary_parts = []
    if passed:
        summary_parts.append(_colorize(f"{passed} passed", "bold"))
    if failed:
        summary_parts.append(_colorize(f"{failed} failed", "red"))
    if errored:
        summary_parts.append(_colorize(f"{errored} errors", "red"))
    if warned:
        summary_parts.append(_colorize(f"{warned} warnings", "dim"))
    if skipped:
        summary_parts.append(_colorize(f"{skipped} skipped", "dim"))
    summary_parts.append(f"{len(results)} total")
    print("  " + ", ".join(summary_parts))

    # Fix summary: only shown when there are failures
    issues = build_fix_summary(results)
    if issues:
        print()
        print(_colorize("  Fix Summary", "bold"))
        print(_colorize("  " + "-" * 40, "dim"))
        for issue in issues:
            n = issue["affected_tests"]
            label = "check" if n == 1 else "checks"
            print(
                f"  [{_colorize(issue['priority'], 'red')}] "
                f"Trouble: {issue['title']} "
                f"{_colorize(f'({n} {label} affected)', 'dim')}"
            )
            print(f"       Fix: {_colorize(issue['fix'], 'dim')}")
            print(f"       Rationale: {_colorize(issue['rationale'], 'dim')}")

    print()
    print(_colorize("  " + "-" * 40, "dim"))
    if failed == 0 and errored == 0:
        print(_colorize("  Result: All checks passed.", "bold"))
    else:
        known = [i for i in issues if i["priority"] != "?"]
        if known:
            print(_colorize(
                f"  Result: {failed + errored} failure(s). Resolve {known[0]['priority']} first.",
                "dim",
            ))
        else:
            print(_colorize(
                f"  Result: {failed + errored} failure(s), review individual check output for details.",
                "dim",
            ))
    print()


def _print_json(
    results: List[ProbeResult],
    target: str = "",
    version: str = "",
    timestamp: str = "",
):
    """Render results as structured JSON with summary counts."""
    counts = count_by_status(results)
    output = {
        "rest_sanity_version": version,
        "timestamp": timestamp,
        "target": target,
        "summary": {
            "total": len(results),
            "passed": counts[ProbeResult.PASS],
            "failed": counts[ProbeResult.FAIL],
            "warnings": counts[ProbeResult.WARN],
            "skipped": counts[ProbeResult.SKIP],
            "errors": counts[ProbeResult.ERROR],
        },
        "issues": build_fix_summary(results),
        "results": [r.to_dict() for r in results],
    }
    print(json.dumps(output, indent=2))
