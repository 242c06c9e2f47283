"""Shared fixtures for relay tests.

Redis is emulated with fakeredis; instances that share one FakeServer see
each other's pub/sub traffic, which is how cross-instance fan-out is tested
without a Redis container.
"""

import asyncio

import fakeredis
import fakeredis.aioredis
import pytest
import pytest_asyncio

from backend import RedisBackbone
from registry import RoomRegistry
from relay import Relay


class FakeEmitter:
    """Stands in for the Socket.IO server: records every emit.

    Connection ids listed in ``failing`` raise on emit, like a socket that
    went away mid-broadcast.
    """

    def __init__(self, failing=()):
        self.sent = []
        self.failing = set(failing)

    async def emit(self, event, data=None, to=None):
        if to in self.failing:
            raise ConnectionResetError(f"socket {to} closed")
        self.sent.append((to, event, data))

    def received_by(self, sid):
        return [(event, data) for to, event, data in self.sent if to == sid]


async def wait_for(predicate, timeout=2.0, interval=0.01):
    """Poll until ``predicate()`` is truthy; pub/sub delivery is asynchronous."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while loop.time() < deadline:
        if predicate():
            return True
        await asyncio.sleep(interval)
    return bool(predicate())


def make_backbone(server, instance_id=None):
    publisher = fakeredis.aioredis.FakeRedis(server=server, decode_responses=True)
    subscriber = fakeredis.aioredis.FakeRedis(server=server, decode_responses=True)
    return RedisBackbone(publisher, subscriber, instance_id=instance_id, poll_timeout=0.05)


@pytest.fixture
def registry():
    return RoomRegistry()


@pytest.fixture
def emitter():
    return FakeEmitter()


@pytest.fixture
def relay(registry, emitter):
    """Relay with no backbone: single-instance delivery only."""
    return Relay(registry, emitter)


@pytest.fixture
def redis_server():
    return fakeredis.FakeServer()


@pytest.fixture
def unreachable_redis_server():
    server = fakeredis.FakeServer()
    server.connected = False
    return server


@pytest_asyncio.fixture
async def degraded_backbone(unreachable_redis_server):
    backbone = make_backbone(unreachable_redis_server, instance_id="degraded")
    yield backbone
    await backbone.close()
