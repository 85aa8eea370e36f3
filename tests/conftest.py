"""Pytest configuration and fixtures for riakcs-client tests.

This file provides:
- make_raw_response: RawResponse factory with sensible defaults
- make_client: RiakCS wired to an httpx.MockTransport handler
- Fixtures: client config, fixed clock, sample operations
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable

import httpx
import pytest

from riakcs_client.client import RiakCS
from riakcs_client.models import (
    ArgSpec,
    ClientConfig,
    Credentials,
    OperationSpec,
    ParamKind,
    RawResponse,
)

PROJECT_ROOT = Path(__file__).parent.parent
FIXTURES_DIR = PROJECT_ROOT / "tests" / "fixtures"

FIXED_TIME = datetime(2024, 1, 2, 3, 4, 5, 678000, tzinfo=timezone.utc)


def fixed_clock() -> datetime:
    return FIXED_TIME


def make_config(**overrides: Any) -> ClientConfig:
    """Create a ClientConfig with test credentials.

    Prefer this over constructing ClientConfig directly - overrides document
    which fields a test actually cares about.
    """
    data: dict[str, Any] = {
        "credentials": Credentials(
            access_key_id="AKIDEXAMPLE",
            secret_access_key="wJalrXUtnFEMI/K7MDENG+bPxRfiCYEXAMPLEKEY",
        ),
        "hostname": "riak.example.com",
    }
    data.update(overrides)
    return ClientConfig(**data)


def make_raw_response(
    status_code: int = 200,
    headers: dict[str, str] | None = None,
    content: bytes = b"",
) -> RawResponse:
    return RawResponse(status_code=status_code, headers=headers or {}, content=content)


def make_client(
    handler: Callable[[httpx.Request], httpx.Response],
    operations: list[OperationSpec] | dict[str, OperationSpec] | None = None,
    config: ClientConfig | None = None,
) -> RiakCS:
    """RiakCS whose HTTP traffic goes to ``handler`` instead of the network."""
    transport = httpx.MockTransport(handler)
    return RiakCS(
        config or make_config(),
        operations if operations is not None else sample_operations(),
        connection_agent=httpx.Client(transport=transport),
        clock=fixed_clock,
    )


def sample_operations() -> list[OperationSpec]:
    return [
        OperationSpec(name="ListBuckets", method="GET", path="/"),
        OperationSpec(
            name="GetBucketAcl",
            method="GET",
            path="/",
            arg_specs={
                "BucketName": ArgSpec(type=ParamKind.PARAM, required=True, name="Bucket"),
                "Acl": ArgSpec(type=ParamKind.RESOURCE, name="acl"),
            },
        ),
        OperationSpec(
            name="TagResource",
            method="POST",
            path="/",
            arg_specs={
                "Tags": ArgSpec(type=ParamKind.PARAM_ARRAY, prefix="Tag"),
                "ResourceId": ArgSpec(type=ParamKind.PARAM, required=True),
            },
            expected_status_code=frozenset({200, 204}),
        ),
    ]


class RecordingHandler:
    """MockTransport handler that records requests and replies with a fixed response."""

    def __init__(
        self,
        status_code: int = 200,
        content: bytes = b"",
        headers: dict[str, str] | None = None,
    ) -> None:
        self.status_code = status_code
        self.content = content
        self.headers = headers or {}
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, headers=self.headers, content=self.content)


@pytest.fixture
def config() -> ClientConfig:
    return make_config()


@pytest.fixture
def operations() -> list[OperationSpec]:
    return sample_operations()


@pytest.fixture
def client(config: ClientConfig, operations: list[OperationSpec]) -> RiakCS:
    """Client for compile-only tests; nothing is sent."""
    c = RiakCS(config, operations, clock=fixed_clock)
    yield c
    c.close()
