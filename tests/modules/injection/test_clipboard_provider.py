import base64

import pytest

from questpilot.core.errors import EnvironmentUnsupported, InjectionFailed
from questpilot.modules.injection import ClipboardProvider, DevToolsProvider, build_provider
from questpilot.modules.injection.base import build_command
from questpilot.modules.injection.clipboard import EXIT_DELIVERED, EXIT_WINDOW_NOT_FOUND


def _provider(code=EXIT_DELIVERED, err=""):
    provider = ClipboardProvider(
        process_name="Discord",
        bridge="window.__questBridge",
        max_tries=3,
        poll_ms=10,
        key_sequence=["^+i", "^v", "{ENTER}"],
        platform="win32",
    )
    scripts = []

    async def run_script(script):
        scripts.append(script)
        return code, err

    provider._run_script = run_script
    return provider, scripts


def test_script_embeds_encoded_bridge_call():
    provider, _ = _provider()
    payload = build_command("execute-quest", questId="1")

    script = provider.build_script(payload)

    encoded = base64.b64encode(provider.build_code(payload).encode("utf-8")).decode("ascii")
    assert encoded in script
    assert "Get-Process -Name 'Discord'" in script
    assert "-lt 3" in script
    assert "SendWait('^+i')" in script and "SendWait('{ENTER}')" in script
    assert provider.build_code(payload).startswith("window.__questBridge && window.__questBridge.handle(")


@pytest.mark.asyncio
async def test_delivered():
    provider, scripts = _provider()
    result = await provider.submit(build_command("get-quests"))
    assert result.success
    assert len(scripts) == 1


@pytest.mark.asyncio
async def test_window_not_found():
    provider, _ = _provider(code=EXIT_WINDOW_NOT_FOUND)
    with pytest.raises(EnvironmentUnsupported):
        await provider.submit(build_command("get-quests"))


@pytest.mark.asyncio
async def test_script_failure():
    provider, _ = _provider(code=1, err="Access denied")
    with pytest.raises(InjectionFailed, match="Access denied"):
        await provider.submit(build_command("get-quests"))


@pytest.mark.asyncio
async def test_non_windows_is_unsupported():
    provider = ClipboardProvider(platform="linux")
    with pytest.raises(EnvironmentUnsupported):
        await provider.submit(build_command("get-quests"))


def test_build_provider_by_mode():
    assert isinstance(build_provider(type("S", (), {"injection_mode": "clipboard"})()), ClipboardProvider)
    assert isinstance(build_provider(type("S", (), {"injection_mode": "DevTools"})()), DevToolsProvider)
    with pytest.raises(ValueError):
        build_provider(type("S", (), {"injection_mode": "carrier-pigeon"})())


@pytest.mark.asyncio
async def test_prepare_waits_for_window_only():
    provider, scripts = _provider()
    await provider.prepare()

    assert len(scripts) == 1
    assert "Get-Process -Name 'Discord'" in scripts[0]
    assert "Set-Clipboard" not in scripts[0]


@pytest.mark.asyncio
async def test_prepare_window_not_found():
    provider, _ = _provider(code=EXIT_WINDOW_NOT_FOUND)
    with pytest.raises(EnvironmentUnsupported):
        await provider.prepare()
