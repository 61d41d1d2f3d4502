"""Individual method-handling checks for the REST probe.

Each public ``check_*`` function takes a ``RestClient`` and returns a list of
``ProbeResult`` objects, one per assertion, so a single failing assertion
does not hide the others.  Checks are grouped by phase:

- Phase 1: OPTIONS on a read-only endpoint (200 + ``Allow``)
- Phase 2: Unsupported methods on that endpoint (405 + ``Allow`` + body)
- Phase 3: POST to ``/{index}/_settings`` (405 + ``Allow: GET,PUT``)

Requests go through ``RestClient.attempt()``, which hands back either the
response or the ``ResponseError`` carrying it; the checks branch on which
one they got.  Transport failures become ERROR results.
"""

from typing import Any, Dict, List, Sequence

import requests

from ..allow import (
    describe_methods,
    incorrect_method_message,
    incorrect_method_prefix,
    normalize_methods,
    parse_allow_header,
)
from ..http_client import ResponseError, RestClient, RestResponse
from .report import ProbeResult

PHASE_OPTIONS = "Phase 1: OPTIONS Allow Header"
PHASE_UNSUPPORTED = "Phase 2: Unsupported Methods"
PHASE_SETTINGS = "Phase 3: Index Settings Handler"

UNEXPECTED_SUCCESS = "Request should have failed with 405 error"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _status_result(name: str, phase: str, resp: RestResponse, expected: int) -> ProbeResult:
    if resp.status_code == expected:
        return ProbeResult(name, ProbeResult.PASS, phase=phase)
    return ProbeResult(
        name, ProbeResult.FAIL,
        message=f"Expected status {expected}, got {resp.status_code}",
        details=resp.body,
        phase=phase,
    )


def _allow_results(
    label: str,
    phase: str,
    resp: RestResponse,
    expected: Sequence[str],
) -> List[ProbeResult]:
    """Check that ``Allow`` is present and its method set equals ``expected``."""
    name = f"{label} Allow header"
    raw = resp.header("Allow")
    if raw is None:
        return [ProbeResult(
            name, ProbeResult.FAIL,
            message="Allow header should be present", phase=phase,
        )]

    actual = parse_allow_header(raw)
    wanted = normalize_methods(expected)
    if actual == wanted:
        return [ProbeResult(name, ProbeResult.PASS, message=f"Allow: {raw}", phase=phase)]

    return [ProbeResult(
        name, ProbeResult.FAIL,
        message=(
            f"Allow header methods {describe_methods(actual)} "
            f"!= expected {describe_methods(wanted)}"
        ),
        details=f"Allow: {raw}",
        phase=phase,
    )]


def _body_contains(name: str, phase: str, body: str, needle: str) -> ProbeResult:
    if needle in body:
        return ProbeResult(name, ProbeResult.PASS, phase=phase)
    return ProbeResult(
        name, ProbeResult.FAIL,
        message=f"Response body should contain '{needle}'",
        details=body,
        phase=phase,
    )


def _expect_405(
    client: RestClient,
    method: str,
    path: str,
    allowed: Sequence[str],
    phase: str,
) -> List[ProbeResult]:
    """Send a request that must fail with 405 and check the carried response.

    With a single allowed method the body must contain the complete
    ``Incorrect HTTP method ... allowed: [M]`` phrase.  With several, the
    server's ordering of the list is not fixed, so the body must contain the
    phrase up to ``allowed:`` and, independently, each allowed method.
    """
    method = method.upper()
    label = f"{method} {path}"
    try:
        outcome = client.attempt(method, path)
    except requests.RequestException as exc:
        return [ProbeResult(label, ProbeResult.ERROR, message=str(exc), phase=phase)]

    if not isinstance(outcome, ResponseError):
        return [ProbeResult(
            f"{label} rejected", ProbeResult.FAIL,
            message=UNEXPECTED_SUCCESS,
            details=f"Server answered {outcome.status_code}",
            phase=phase,
        )]

    resp = outcome.response
    results = [_status_result(f"{label} status", phase, resp, 405)]
    results.extend(_allow_results(label, phase, resp, allowed))

    if len(allowed) == 1:
        results.append(_body_contains(
            f"{label} body", phase, resp.body,
            incorrect_method_message(path, method, allowed),
        ))
    else:
        results.append(_body_contains(
            f"{label} body", phase, resp.body,
            incorrect_method_prefix(path, method),
        ))
        for m in allowed:
            results.append(_body_contains(
                f"{label} body lists {m.upper()}", phase, resp.body, m.upper(),
            ))
    return results


# ---------------------------------------------------------------------------
# Phase 1: OPTIONS
# ---------------------------------------------------------------------------

def check_options_allow(
    client: RestClient,
    path: str = "/_tasks",
    allowed: Sequence[str] = ("GET",),
    repeat: int = 1,
) -> List[ProbeResult]:
    """OPTIONS on a valid endpoint must return 200 and ``Allow`` equal to ``allowed``.

    With ``repeat > 1`` the request is sent that many times; every response
    must satisfy the same contract.
    """
    results: List[ProbeResult] = []
    phase = PHASE_OPTIONS

    for i in range(max(1, repeat)):
        label = f"OPTIONS {path}" if repeat <= 1 else f"OPTIONS {path} (#{i + 1})"
        try:
            outcome = client.attempt("OPTIONS", path)
        except requests.RequestException as exc:
            results.append(ProbeResult(label, ProbeResult.ERROR, message=str(exc), phase=phase))
            return results

        resp = outcome.response if isinstance(outcome, ResponseError) else outcome
        results.append(_status_result(f"{label} status", phase, resp, 200))
        results.extend(_allow_results(label, phase, resp, allowed))

    return results


# ---------------------------------------------------------------------------
# Phase 2: Unsupported methods
# ---------------------------------------------------------------------------

def check_unsupported_method(
    client: RestClient,
    path: str = "/_tasks",
    method: str = "DELETE",
    allowed: Sequence[str] = ("GET",),
) -> List[ProbeResult]:
    """A method outside ``allowed`` must be rejected with 405, ``Allow``, and an explanation."""
    return _expect_405(client, method, path, allowed, PHASE_UNSUPPORTED)


def check_disallowed_methods(
    client: RestClient,
    path: str = "/_tasks",
    methods: Sequence[str] = ("DELETE",),
    allowed: Sequence[str] = ("GET",),
) -> List[ProbeResult]:
    """Run ``check_unsupported_method`` for every method in ``methods``.

    Raises:
        ValueError: one of ``methods`` is itself in ``allowed``.
    """
    overlap = normalize_methods(methods) & normalize_methods(allowed)
    if overlap:
        raise ValueError(
            f"Methods {describe_methods(overlap)} are allowed on {path} and cannot be probed for 405"
        )

    results: List[ProbeResult] = []
    seen = set()
    for method in methods:
        method = method.strip().upper()
        if method in seen:
            continue
        seen.add(method)
        results.extend(check_unsupported_method(client, path, method, allowed))
    return results


# ---------------------------------------------------------------------------
# Phase 3: Index settings handler
# ---------------------------------------------------------------------------

def check_index_settings_post(
    client: RestClient,
    index: str,
    created_resources: List[Dict[str, Any]],
) -> List[ProbeResult]:
    """``POST /{index}/_settings`` must hit the PUT/GET settings handler and get 405.

    Creates ``index`` first with ``PUT /{index}``; a successful create is
    appended to ``created_resources`` so the runner can delete it later.
    """
    results: List[ProbeResult] = []
    phase = PHASE_SETTINGS
    index_path = f"/{index}"
    settings_path = f"{index_path}/_settings"

    # -- Setup: create the index ---------------------------------------------
    try:
        outcome = client.attempt("PUT", index_path)
    except requests.RequestException as exc:
        return _setup_failed(index_path, settings_path, str(exc), phase)
    if isinstance(outcome, ResponseError):
        return _setup_failed(index_path, settings_path, str(outcome), phase)

    created_resources.append({"path": index_path})
    results.append(ProbeResult(
        f"PUT {index_path} (setup)", ProbeResult.PASS,
        message=f"Created, status {outcome.status_code}", phase=phase,
    ))

    results.extend(_expect_405(client, "POST", settings_path, ("PUT", "GET"), phase))
    return results


def _setup_failed(index_path: str, settings_path: str, reason: str, phase: str) -> List[ProbeResult]:
    return [
        ProbeResult(
            f"PUT {index_path} (setup)", ProbeResult.ERROR,
            message=reason, phase=phase,
        ),
        ProbeResult(
            f"POST {settings_path}", ProbeResult.SKIP,
            message="Skipped, index could not be created", phase=phase,
        ),
    ]
