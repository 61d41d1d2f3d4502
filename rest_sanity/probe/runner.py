"""Orchestrates the REST method-handling probe.

``run_probe()`` connects to a live server, runs the three check phases,
deletes the index it created, prints the report, and returns an exit code
(0 = all pass, 1 = failures).

Safety mechanisms:
- Phase 3 creates an index and only runs with ``accept_side_effects=True``
  (CLI flag: ``--i-accept-side-effects``); without it the phase is skipped
- Generated index names use ``TEST_PREFIX`` plus a random suffix so
  concurrent or repeated runs do not collide
- Created resources are tracked and deleted in reverse order
"""

import datetime
import logging
import uuid
from typing import Any, Dict, List, Optional, Sequence, Tuple

import requests

from .. import __version__
from ..allow import normalize_methods
from ..http_client import ResponseError, RestClient
from .checks import (
    PHASE_SETTINGS,
    check_disallowed_methods,
    check_index_settings_post,
    check_options_allow,
)
from .report import ProbeResult, has_failures, print_results

logger = logging.getLogger(__name__)

# Prefix for every index the probe creates, to keep clear of real data
TEST_PREFIX = "rest-sanity-test-"

DEFAULT_ENDPOINT = "/_tasks"
DEFAULT_ALLOWED = ("GET",)
# Tried in order for the 405 check when no methods are given
DISALLOWED_CANDIDATES = ("DELETE", "PUT", "POST", "PATCH")

# Upper bound on repeated OPTIONS requests
MAX_REPEAT = 20


def make_index_name() -> str:
    """A fresh index name, unique per call (e.g. ``rest-sanity-test-1a2b3c4d5e6f``)."""
    return f"{TEST_PREFIX}{uuid.uuid4().hex[:12]}"


def default_methods(allowed: Sequence[str]) -> Tuple[str, ...]:
    """The method to probe for 405 when none is given: the first candidate not in ``allowed``."""
    permitted = normalize_methods(allowed)
    for method in DISALLOWED_CANDIDATES:
        if method not in permitted:
            return (method,)
    return ()


def run_probe(
    base_url: str,
    token: Optional[str] = None,
    username: Optional[str] = None,
    password: Optional[str] = None,
    tls_no_verify: bool = False,
    timeout: float = 30,
    proxy: Optional[str] = None,
    ca_bundle: Optional[str] = None,
    endpoint: str = DEFAULT_ENDPOINT,
    allowed: Sequence[str] = DEFAULT_ALLOWED,
    methods: Optional[Sequence[str]] = None,
    repeat: int = 1,
    index: Optional[str] = None,
    accept_side_effects: bool = False,
    skip_cleanup: bool = False,
    json_output: bool = False,
) -> int:
    """Run the probe and return an exit code.

    Returns:
        0 if no check failed or errored (warnings and skips are OK), 1 otherwise.

    Args:
        base_url:             Root URL of the server.
        token:                Bearer token for authentication.
        username:             Username for HTTP Basic authentication.
        password:             Password for HTTP Basic authentication.
        tls_no_verify:        Skip TLS certificate verification.
        timeout:              Per-request timeout in seconds.
        proxy:                HTTP/HTTPS proxy URL.
        ca_bundle:            Path to a CA bundle file for TLS certificate verification.
        endpoint:             Read-only endpoint probed in phases 1 and 2.
        allowed:              Methods ``endpoint`` is expected to allow.
        methods:              Methods expected to be rejected on ``endpoint``;
                              ``default_methods(allowed)`` when None or empty.
        repeat:               Number of OPTIONS requests in phase 1 (capped at ``MAX_REPEAT``).
        index:                Index name for phase 3; generated when omitted.
        accept_side_effects:  Must be True for phase 3, which creates an index.
        skip_cleanup:         If True, leave the created index on the server.
        json_output:          If True, output results as JSON instead of terminal.

    Raises:
        ValueError: ``methods`` overlaps ``allowed``.
    """
    repeat = max(1, min(repeat, MAX_REPEAT))
    if not methods:
        methods = default_methods(allowed)

    client = RestClient(
        base_url,
        token=token,
        username=username,
        password=password,
        tls_no_verify=tls_no_verify,
        timeout=timeout,
        proxy=proxy,
        ca_bundle=ca_bundle,
    )

    results: List[ProbeResult] = []
    created_resources: List[Dict[str, Any]] = []
    run_timestamp = datetime.datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    logger.info("Probing %s (endpoint %s)", client.base_url, endpoint)

    # Phase 1: OPTIONS
    results.extend(check_options_allow(client, endpoint, allowed, repeat=repeat))

    # Phase 2: Unsupported methods
    results.extend(check_disallowed_methods(client, endpoint, methods, allowed))

    # Phase 3: Index settings handler (creates an index)
    if accept_side_effects:
        index = index or make_index_name()
        logger.info("Creating index %s for settings handler check", index)
        results.extend(check_index_settings_post(client, index, created_resources))
    else:
        results.append(ProbeResult(
            "POST /{index}/_settings", ProbeResult.SKIP,
            message="Creates an index; pass --i-accept-side-effects to run",
            phase=PHASE_SETTINGS,
        ))

    if not skip_cleanup and created_resources:
        _cleanup(client, created_resources, results)

    print_results(results, json_output=json_output, target=client.base_url,
                  version=__version__, timestamp=run_timestamp)

    return 1 if has_failures(results) else 0


def side_effect_notice(base_url: str) -> str:
    """Explain what phase 3 would create, for display when it is skipped."""
    return (
        f"Phase 3 creates a test index on {base_url} and deletes it afterwards. "
        f"Generated index names use the prefix '{TEST_PREFIX}'. "
        f"Pass --i-accept-side-effects to run it."
    )


def _cleanup(
    client: RestClient,
    created_resources: List[Dict[str, Any]],
    results: List[ProbeResult],
):
    """Delete all created resources in reverse order, recording each outcome."""
    phase = "Cleanup"
    for resource in reversed(created_resources):
        path = resource["path"]
        name = f"DELETE {path}"
        try:
            outcome = client.attempt("DELETE", path)
        except requests.RequestException as exc:
            results.append(ProbeResult(name, ProbeResult.ERROR, message=str(exc), phase=phase))
            continue

        if isinstance(outcome, ResponseError):
            results.append(ProbeResult(
                name, ProbeResult.WARN,
                message=f"Cleanup failed with {outcome.response.status_code}; delete {path} manually",
                phase=phase,
            ))
        else:
            results.append(ProbeResult(name, ProbeResult.PASS, phase=phase))
