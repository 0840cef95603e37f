"""Pytest configuration and fixtures."""

import asyncio
import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from lbsync import config as lbsync_config
from lbsync.models import VIP, Monitor, Node, Pool, PoolMember, ProviderConfig
from lbsync.providers.dummy import DummyProvider
from lbsync.providers.registry import ProviderRegistry
from lbsync.session import BackendSession


@pytest.fixture(autouse=True)
def reset_lbsync_config():
    """Make every test read configuration from its own environment."""
    lbsync_config.reset_config()
    yield
    lbsync_config.reset_config()


@pytest.fixture
def dummy():
    """A single dummy appliance shared by every session a test opens."""
    return DummyProvider()


@pytest.fixture
def registry(dummy):
    """Registry whose 'Dummy' vendor always hands back the same appliance."""
    reg = ProviderRegistry()
    reg.register("Dummy", lambda: dummy)
    return reg


@pytest.fixture
def dummy_config():
    return ProviderConfig(vendor="Dummy", host="10.0.0.1", port=443)


@pytest_asyncio.fixture
async def session(registry, dummy_config):
    """A connected session against the dummy appliance."""
    sess = await BackendSession.open(registry, dummy_config, "admin", "secret")
    yield sess
    await sess.close()


@pytest.fixture
def nodes():
    return [
        Node(name="n1", host="1.1.1.1"),
        Node(name="n2", host="1.1.1.2"),
    ]


@pytest.fixture
def sample_monitor():
    return Monitor(name="Monitor-x", path="/healthz", port=1936, monitor_type="http")


@pytest.fixture
def sample_pool(nodes):
    return Pool(
        name="Pool-x-80",
        monitor_name="Monitor-x",
        members=[PoolMember(node=n, port=80) for n in nodes],
    )


@pytest.fixture
def sample_vip():
    return VIP(name="VIP-x-80", ip="10.0.0.100", port=80, pool_name="Pool-x-80")


@pytest.fixture
def sample_document():
    """Load balancer document as read from YAML."""
    return {
        "name": "x",
        "vip": "10.0.0.100",
        "ports": [80, 443],
        "monitor": {"path": "/healthz", "port": 1936, "monitortype": "http"},
        "provider": {
            "vendor": "Dummy",
            "host": "10.0.0.1",
            "port": 443,
            "creds": "lb-creds",
            "validatecerts": False,
            "lbmethod": "ROUNDROBIN",
        },
        "nodes": [
            {"name": "n1", "host": "1.1.1.1"},
            {"name": "n2", "host": "1.1.1.2"},
        ],
    }


# ==================== Fake appliance ====================


@dataclass
class RecordedRequest:
    method: str
    path: str
    query: Dict[str, str]
    body: Any
    headers: Dict[str, str]


class FakeAppliance:
    """
    In-process HTTP appliance that records every request.

    Responses are programmed per (method, path); anything not programmed
    answers 200 with an empty JSON object.
    """

    def __init__(self):
        self.requests: List[RecordedRequest] = []
        self.routes: Dict[Tuple[str, str], Tuple[int, Any]] = {}
        self.delays: Dict[Tuple[str, str], float] = {}
        self.server: Optional[TestServer] = None

    def respond(self, method: str, path: str, status: int = 200, body: Any = None):
        self.routes[(method, path)] = (status, body)

    def delay(self, method: str, path: str, seconds: float):
        self.delays[(method, path)] = seconds

    def app(self) -> web.Application:
        app = web.Application()
        app.router.add_route("*", "/{tail:.*}", self.handle)
        return app

    async def handle(self, request: web.Request) -> web.Response:
        text = await request.text()
        self.requests.append(
            RecordedRequest(
                method=request.method,
                path=request.path,
                query=dict(request.query),
                body=json.loads(text) if text else None,
                headers=dict(request.headers),
            )
        )
        seconds = self.delays.get((request.method, request.path))
        if seconds:
            await asyncio.sleep(seconds)
        status, body = self.routes.get((request.method, request.path), (200, {}))
        if body is None:
            return web.Response(status=status)
        if isinstance(body, bytes):
            return web.Response(
                body=body, status=status, content_type="text/plain", charset="utf-8"
            )
        return web.json_response(body, status=status)

    @property
    def host(self) -> str:
        return f"http://{self.server.host}"

    @property
    def port(self) -> int:
        return self.server.port

    def calls(self) -> List[Tuple[str, str]]:
        return [(r.method, r.path) for r in self.requests]

    def find(self, method: str, path: str) -> List[RecordedRequest]:
        return [r for r in self.requests if r.method == method and r.path == path]


@pytest_asyncio.fixture
async def appliance():
    fake = FakeAppliance()
    fake.server = TestServer(fake.app())
    await fake.server.start_server()
    yield fake
    await fake.server.close()
