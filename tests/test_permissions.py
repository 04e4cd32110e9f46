import asyncio

from hazard_map.device import BrowserDevice, parse_report
from hazard_map.errors import SettingsUnavailable
from hazard_map.notices import ALERT, TOAST
from hazard_map.permissions import (
    AuthorizationPermissionGate,
    LegacyPermissionGate,
    PermissionStatus,
    PromptPermissionGate,
    select_permission_gate,
)
from tests.fakes import FakeDevice


def run_gate(gate_cls, device, notices):
    return asyncio.run(gate_cls(device, notices).check_and_request())


def test_prompt_gate_already_granted_does_not_prompt(notices):
    device = FakeDevice(granted=True)
    assert run_gate(PromptPermissionGate, device, notices) is True
    assert device.calls == ["check_permission"]
    assert notices.drain() == []


def test_prompt_gate_grant_after_request(notices):
    device = FakeDevice(granted=False, request=PermissionStatus.GRANTED)
    assert run_gate(PromptPermissionGate, device, notices) is True
    assert device.calls == ["check_permission", "request_permission"]


def test_prompt_gate_denied_shows_toast(notices):
    device = FakeDevice(request=PermissionStatus.DENIED)
    assert run_gate(PromptPermissionGate, device, notices) is False
    [notice] = notices.drain()
    assert (notice.kind, notice.title) == (TOAST, "Location permission denied by user.")


def test_prompt_gate_never_ask_again_shows_toast_once(notices):
    device = FakeDevice(request=PermissionStatus.NEVER_ASK_AGAIN)
    assert run_gate(PromptPermissionGate, device, notices) is False
    [notice] = notices.drain()
    assert notice.title == "Location permission revoked by user."
    assert device.calls.count("request_permission") == 1


def test_authorization_gate_granted(notices):
    device = FakeDevice(authorization=PermissionStatus.GRANTED)
    assert run_gate(AuthorizationPermissionGate, device, notices) is True
    assert device.calls == ["request_authorization"]


def test_authorization_gate_denied_alerts(notices):
    device = FakeDevice(authorization=PermissionStatus.DENIED)
    assert run_gate(AuthorizationPermissionGate, device, notices) is False
    [notice] = notices.drain()
    assert (notice.kind, notice.title, notice.actions) == (ALERT, "Location permission denied", ())


def test_authorization_gate_restricted_is_silent(notices):
    device = FakeDevice(authorization=PermissionStatus.RESTRICTED)
    assert run_gate(AuthorizationPermissionGate, device, notices) is False
    assert notices.drain() == []


def test_disabled_service_offers_settings_action(notices):
    device = FakeDevice(authorization=PermissionStatus.DISABLED,
                        settings_error=SettingsUnavailable("nope"))

    async def scenario():
        gate = AuthorizationPermissionGate(device, notices)
        assert await gate.check_and_request() is False
        [notice] = notices.drain()
        assert notice.title.startswith("Turn on Location Services")
        labels = [a.label for a in notice.actions]
        assert labels == ["Go to Settings", "Don't Use Location"]
        notice.actions[1].run()
        notice.actions[0].run()
        for _ in range(5):
            await asyncio.sleep(0)

    asyncio.run(scenario())
    assert device.calls == ["request_authorization", "open_settings"]
    [failed] = notices.drain()
    assert failed.title == "Unable to open settings"


def test_legacy_gate_always_grants(notices):
    device = FakeDevice()
    assert run_gate(LegacyPermissionGate, device, notices) is True
    assert device.calls == []


def test_gate_selected_by_platform(notices):
    device = FakeDevice()
    assert isinstance(select_permission_gate("android", 12, device, notices), PromptPermissionGate)
    assert isinstance(select_permission_gate("android", None, device, notices), PromptPermissionGate)
    assert isinstance(select_permission_gate("android", 5, device, notices), LegacyPermissionGate)
    assert isinstance(select_permission_gate("ios", 17, device, notices), AuthorizationPermissionGate)
    assert isinstance(select_permission_gate("web", None, device, notices), AuthorizationPermissionGate)


def test_browser_refusal_is_a_status_not_an_exception(notices):
    async def scenario(params):
        device = BrowserDevice()
        device.deliver(parse_report(params))
        return await PromptPermissionGate(device, notices).check_and_request()

    assert asyncio.run(scenario({"geo_status": "denied", "geo_perm": "prompt", "geo_code": "1"})) is False
    assert asyncio.run(scenario({"geo_status": "denied", "geo_perm": "denied", "geo_code": "1"})) is False
    assert [n.title for n in notices.drain()] == [PromptPermissionGate.DENIED_MESSAGE,
                                                  PromptPermissionGate.REVOKED_MESSAGE]
