import asyncio

from hazard_map.config import PositionOptions
from hazard_map.errors import PositionTimeout, PositionUnavailable
from hazard_map.models import Coordinate
from hazard_map.permissions import AuthorizationPermissionGate, PermissionStatus
from hazard_map.position import PositionProvider, locate
from tests.fakes import FakeDevice


def test_locate_skips_position_without_capability(notices):
    device = FakeDevice(authorization=PermissionStatus.DENIED)
    gate = AuthorizationPermissionGate(device, notices)
    assert asyncio.run(locate(gate, PositionProvider(device))) is None
    assert "get_current_position" not in device.calls


def test_locate_returns_fix_when_granted(notices):
    device = FakeDevice(position=Coordinate(-8.05, -34.9))
    gate = AuthorizationPermissionGate(device, notices)
    assert asyncio.run(locate(gate, PositionProvider(device))) == Coordinate(-8.05, -34.9)


def test_locate_swallows_position_errors(notices, caplog):
    device = FakeDevice(position=PositionUnavailable("gps off"))
    gate = AuthorizationPermissionGate(device, notices)
    assert asyncio.run(locate(gate, PositionProvider(device))) is None
    assert "gps off" in caplog.text


def test_provider_enforces_timeout():
    device = FakeDevice(position="hang")
    provider = PositionProvider(device, PositionOptions(timeout=0.01))

    async def scenario():
        try:
            await provider.get_current_position()
        except PositionTimeout as e:
            return e.code
        return None

    assert asyncio.run(scenario()) == 3
