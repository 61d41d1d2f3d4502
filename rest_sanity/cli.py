"""CLI interface for rest-sanity using Click."""

import logging
import sys
from typing import Optional, Tuple

import click

from . import __version__
from .allow import describe_methods, normalize_methods
from .probe.runner import (
    DEFAULT_ENDPOINT,
    MAX_REPEAT,
    run_probe,
    side_effect_notice,
)


def _configure_logging(verbose: bool):
    """Send library logging to stderr; DEBUG shows every request sent."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _check_path(ctx, param, value: str) -> str:
    if not value.startswith("/"):
        raise click.BadParameter("must start with '/'")
    return value


@click.group()
@click.version_option(version=__version__, prog_name="rest-sanity")
def main():
    """Check how a REST search server handles HTTP methods.

    Verifies OPTIONS responses, 405 Method Not Allowed responses, and the
    Allow header a server sends with them.
    """


@main.command()
@click.argument("url", envvar="REST_SANITY_URL")
@click.option("--token", envvar="REST_SANITY_TOKEN", help="Bearer token for authentication.")
@click.option("--username", envvar="REST_SANITY_USERNAME", help="Username for HTTP Basic auth.")
@click.option("--password", envvar="REST_SANITY_PASSWORD", help="Password for HTTP Basic auth.")
@click.option("--tls-no-verify", is_flag=True, help="Skip TLS certificate verification.")
@click.option("--ca-bundle", type=click.Path(exists=True, dir_okay=False),
              help="CA bundle for TLS verification.")
@click.option("--proxy", help="HTTP/HTTPS proxy URL.")
@click.option("--timeout", type=click.FloatRange(min=0, min_open=True), default=30,
              show_default=True, help="Per-request timeout in seconds.")
@click.option("--endpoint", default=DEFAULT_ENDPOINT, show_default=True, callback=_check_path,
              help="Read-only endpoint probed with OPTIONS and unsupported methods.")
@click.option("--allow", "allowed", multiple=True, default=("GET",), show_default=True,
              help="Method the endpoint should allow (repeatable).")
@click.option("--method", "methods", multiple=True,
              help="Method the endpoint should reject with 405 (repeatable). "
                   "Default: DELETE, or the first of PUT, POST, PATCH not given with --allow.")
@click.option("--repeat", type=click.IntRange(1, MAX_REPEAT), default=1, show_default=True,
              help="Number of OPTIONS requests to send.")
@click.option("--index", help="Index name for the settings check (default: generated).")
@click.option("--i-accept-side-effects", "accept_side_effects", is_flag=True,
              help="Allow the settings check to create (and then delete) an index.")
@click.option("--skip-cleanup", is_flag=True, help="Leave the created index on the server.")
@click.option("--json", "json_output", is_flag=True, help="Print results as JSON.")
@click.option("-v", "--verbose", is_flag=True, help="Log every request to stderr.")
def probe(
    url: str,
    token: Optional[str],
    username: Optional[str],
    password: Optional[str],
    tls_no_verify: bool,
    ca_bundle: Optional[str],
    proxy: Optional[str],
    timeout: float,
    endpoint: str,
    allowed: Tuple[str, ...],
    methods: Tuple[str, ...],
    repeat: int,
    index: Optional[str],
    accept_side_effects: bool,
    skip_cleanup: bool,
    json_output: bool,
    verbose: bool,
):
    """Probe URL for OPTIONS / 405 / Allow header compliance.

    \b
    Examples:
      rest-sanity probe http://localhost:9200
      rest-sanity probe http://localhost:9200 --i-accept-side-effects --json
      rest-sanity probe https://search.example.com --token $TOKEN --method DELETE --method PUT
    """
    _configure_logging(verbose)

    if token and (username or password):
        raise click.UsageError("Use either --token or --username/--password, not both.")
    if bool(username) != bool(password):
        raise click.UsageError("--username and --password must be given together.")

    overlap = normalize_methods(methods) & normalize_methods(allowed)
    if overlap:
        raise click.BadParameter(
            f"{describe_methods(overlap)} also given with --allow",
            param_hint="--method",
        )

    if not accept_side_effects:
        click.echo(side_effect_notice(url), err=True)

    exit_code = run_probe(
        url,
        token=token,
        username=username,
        password=password,
        tls_no_verify=tls_no_verify,
        timeout=timeout,
        proxy=proxy,
        ca_bundle=ca_bundle,
        endpoint=endpoint,
        allowed=allowed,
        methods=methods,
        repeat=repeat,
        index=index,
        accept_side_effects=accept_side_effects,
        skip_cleanup=skip_cleanup,
        json_output=json_output,
    )
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
