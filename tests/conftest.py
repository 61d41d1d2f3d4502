"""
Shared pytest fixtures.

Most tests run against an in-process ``MockRestServer``.  The response-header
scenarios in ``test_rest_http_response_headers.py`` can instead be pointed at
a real server with:

    REST_SANITY_TEST_URL=http://localhost:9200 pytest
"""

import os
import uuid

import pytest
import requests

from rest_sanity.http_client import RestClient
from tests.mock_rest_server import MockRestServer


@pytest.fixture
def server():
    """A fully conformant mock server."""
    with MockRestServer() as s:
        yield s


@pytest.fixture
def client(server):
    return RestClient(server.base_url, timeout=5)


def server_reachable(url: str) -> bool:
    """True when a GET on the server root gets any HTTP response within 5 seconds."""
    try:
        requests.get(url + "/", timeout=5)
    except requests.RequestException:
        return False
    return True


@pytest.fixture(scope="session")
def target_url():
    """Base URL for the response-header scenarios.

    ``REST_SANITY_TEST_URL`` when set (the session is skipped if that server
    is unreachable); otherwise a conformant mock server for the session.
    """
    url = os.environ.get("REST_SANITY_TEST_URL")
    if url:
        url = url.rstrip("/")
        if not server_reachable(url):
            pytest.skip(f"Server not reachable at {url}")
        yield url
        return

    with MockRestServer() as s:
        yield s.base_url


@pytest.fixture
def target_client(target_url):
    """Client for ``target_url``; Basic auth from ``REST_SANITY_TEST_USERNAME`` / ``_PASSWORD``."""
    return RestClient(
        target_url,
        username=os.environ.get("REST_SANITY_TEST_USERNAME"),
        password=os.environ.get("REST_SANITY_TEST_PASSWORD"),
        timeout=10,
    )


@pytest.fixture
def index_name(target_client):
    """A unique index name per test; the index is deleted afterwards if it exists."""
    name = f"testindex-{uuid.uuid4().hex[:12]}"
    yield name
    target_client.attempt("DELETE", f"/{name}")
