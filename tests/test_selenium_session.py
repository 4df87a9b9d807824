"""Tests for SeleniumSession event detection, sending and logout.

The browser is replaced by a scripted client so no Chrome is needed.
"""

import asyncio
import errno

import pytest
from selenium.common.exceptions import WebDriverException

from wabridge.infrastructure.whatsapp import (
    MessageMedia,
    PageStatus,
    ResourceBusyError,
    SeleniumSession,
    SessionEventType,
    SessionNotReadyError,
    SessionState,
)
from wabridge.infrastructure.whatsapp import messaging_provider
from wabridge.application import LifecycleController, LifecycleState
from wabridge.infrastructure.config import Settings


class ScriptedClient:
    """Stands in for WhatsAppClient, replaying page statuses in order."""

    instances = []
    scripts = []

    def __init__(self, settings):
        self.settings = settings
        script = ScriptedClient.scripts.pop(0) if ScriptedClient.scripts else []
        if isinstance(script, Exception):
            raise script
        self.statuses = list(script)
        self.texts = []
        self.files = []
        self.logged_out = False
        self.closed = False
        ScriptedClient.instances.append(self)

    def read_status(self):
        status = self.statuses.pop(0) if self.statuses else PageStatus()
        if isinstance(status, Exception):
            raise status
        return status

    def send_text(self, phone, text):
        self.texts.append((phone, text))

    def send_file(self, phone, path, caption=None):
        self.files.append((phone, path.name, path.read_bytes(), caption))

    def logout(self):
        self.logged_out = True

    def close(self):
        self.closed = True


@pytest.fixture(autouse=True)
def _reset_instances():
    ScriptedClient.instances = []
    ScriptedClient.scripts = []
    yield
    ScriptedClient.instances = []
    ScriptedClient.scripts = []


@pytest.fixture
def session(settings):
    return SeleniumSession(settings.whatsapp, client_factory=ScriptedClient)


async def _start(session, statuses):
    """Initialize without the background watcher and queue page statuses."""
    await session.initialize()
    await session._stop_watcher()
    client = ScriptedClient.instances[-1]
    client.statuses = list(statuses)
    return client


async def _poll(session, times):
    events = []
    for _ in range(times):
        events.extend(await session._poll_once())
    return events


class TestEventDetection:
    @pytest.mark.asyncio
    async def test_pairing_then_ready(self, session):
        await _start(session, [
            PageStatus(qr_payload="2@first"),
            PageStatus(qr_payload="2@first"),
            PageStatus(qr_payload="2@second"),
            PageStatus(loading=True),
            PageStatus(logged_in=True),
        ])

        events = await _poll(session, 5)

        assert [(e.type, e.payload) for e in events] == [
            (SessionEventType.QR, "2@first"),
            (SessionEventType.QR, "2@second"),
            (SessionEventType.AUTHENTICATED, None),
            (SessionEventType.READY, None),
        ]
        assert session.state is SessionState.READY

    @pytest.mark.asyncio
    async def test_restored_profile_is_ready_in_one_poll(self, session):
        await _start(session, [PageStatus(logged_in=True)])

        events = await _poll(session, 1)

        assert [e.type for e in events] == [
            SessionEventType.AUTHENTICATED,
            SessionEventType.READY,
        ]

    @pytest.mark.asyncio
    async def test_qr_after_ready_is_a_logout(self, session):
        client = await _start(session, [
            PageStatus(logged_in=True),
            PageStatus(qr_payload="2@again"),
        ])

        events = await _poll(session, 2)

        assert events[-1].type is SessionEventType.DISCONNECTED
        assert events[-1].payload == "LOGOUT"
        assert session.state is SessionState.DISCONNECTED
        assert client.closed

    @pytest.mark.asyncio
    async def test_dead_browser_is_a_disconnect(self, session):
        await _start(session, [WebDriverException("chrome not reachable")])

        events = await _poll(session, 1)

        assert [(e.type, e.payload) for e in events] == [
            (SessionEventType.DISCONNECTED, "BROWSER_CLOSED")
        ]

    @pytest.mark.asyncio
    async def test_listener_can_reinitialize(self, session):
        await _start(session, [WebDriverException("gone")])
        seen = []

        async def listener(event):
            seen.append(event.type)
            if event.type is SessionEventType.DISCONNECTED:
                await session.initialize()

        async def broken_listener(event):
            raise RuntimeError("listener bug")

        session.subscribe(broken_listener)
        session.subscribe(listener)

        for event in await _poll(session, 1):
            await session._dispatch(event)

        assert seen == [SessionEventType.DISCONNECTED]
        assert len(ScriptedClient.instances) == 2
        assert session.state is SessionState.UNAUTHENTICATED
        await session.close()


async def _wait_for(condition, timeout=3.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not condition():
        assert loop.time() < deadline, "condition not met in time"
        await asyncio.sleep(0.01)


class TestWatcher:
    @pytest.mark.asyncio
    async def test_disconnect_hands_over_to_a_new_watcher(self, settings, monkeypatch):
        monkeypatch.setenv("WHATSAPP_POLL_INTERVAL", "0.01")
        fast = Settings()
        ScriptedClient.scripts = [
            [
                PageStatus(qr_payload="2@pair"),
                PageStatus(logged_in=True),
                WebDriverException("chrome not reachable"),
            ],
            WebDriverException("chrome failed to start"),
            [],
        ]
        session = SeleniumSession(fast.whatsapp, client_factory=ScriptedClient)
        rendered = []
        controller = LifecycleController(
            session,
            storage_dirs=[fast.whatsapp.auth_dir, fast.whatsapp.cache_dir],
            render_pairing_code=rendered.append,
            reconnect_delay=0.01,
        )

        await controller.start()
        first_watcher = session._watcher

        await _wait_for(lambda: len(ScriptedClient.instances) == 2)
        await _wait_for(first_watcher.done)
        new_watcher = session._watcher

        assert rendered == ["2@pair"]
        assert ScriptedClient.instances[0].closed
        assert new_watcher is not None
        assert new_watcher is not first_watcher
        assert not new_watcher.done()
        assert session.state is SessionState.UNAUTHENTICATED
        assert controller.state is LifecycleState.UNAUTHENTICATED

        # The new watcher keeps polling the relaunched browser
        ScriptedClient.instances[1].statuses = [PageStatus(logged_in=True)]
        await _wait_for(lambda: session.state is SessionState.READY)
        assert controller.state is LifecycleState.READY

        await session.close()
        assert new_watcher.done()


class TestSend:
    @pytest.mark.asyncio
    async def test_rejects_before_ready(self, session):
        await _start(session, [])

        with pytest.raises(SessionNotReadyError):
            await session.send_message("919999999999@c.us", "hi")

    @pytest.mark.asyncio
    async def test_text_goes_to_phone_number(self, session):
        client = await _start(session, [PageStatus(logged_in=True)])
        await _poll(session, 1)

        await session.send_message("919999999999@c.us", "hi")

        assert client.texts == [("919999999999", "hi")]

    @pytest.mark.asyncio
    async def test_media_is_written_to_a_temp_file(self, session):
        client = await _start(session, [PageStatus(logged_in=True)])
        await _poll(session, 1)
        media = MessageMedia("application/pdf", b"%PDF", "../../invoice.pdf")

        await session.send_message("919999999999@c.us", media, caption="Here you go")

        assert client.files == [("919999999999", "invoice.pdf", b"%PDF", "Here you go")]


class TestLogout:
    @pytest.mark.asyncio
    async def test_logout_unlinks_and_removes_profile(self, session, settings):
        settings.whatsapp.auth_dir.mkdir(parents=True)
        client = await _start(session, [PageStatus(logged_in=True)])
        await _poll(session, 1)

        await session.logout()

        assert client.logged_out
        assert client.closed
        assert not settings.whatsapp.auth_dir.exists()

    @pytest.mark.asyncio
    async def test_busy_profile_raises_resource_busy(self, session, monkeypatch):
        await _start(session, [])

        def _busy(path):
            raise OSError(errno.EBUSY, "Device or resource busy", str(path))

        monkeypatch.setattr(messaging_provider.shutil, "rmtree", _busy)

        with pytest.raises(ResourceBusyError):
            await session.logout()

    @pytest.mark.asyncio
    async def test_retry_skips_browser_steps(self, session, settings, monkeypatch):
        client = await _start(session, [PageStatus(logged_in=True)])
        await _poll(session, 1)
        real_rmtree = messaging_provider.shutil.rmtree
        calls = []

        def _busy_once(path):
            calls.append(path)
            if len(calls) == 1:
                raise OSError(errno.EBUSY, "Device or resource busy", str(path))
            real_rmtree(path, ignore_errors=True)

        monkeypatch.setattr(messaging_provider.shutil, "rmtree", _busy_once)

        with pytest.raises(ResourceBusyError):
            await session.logout()
        client.logged_out = False

        await session.logout()

        assert not client.logged_out
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_other_os_errors_are_not_busy(self, session, monkeypatch):
        await _start(session, [])

        def _denied(path):
            raise PermissionError(errno.EACCES, "Permission denied", str(path))

        monkeypatch.setattr(messaging_provider.shutil, "rmtree", _denied)

        with pytest.raises(PermissionError):
            await session.logout()


def test_is_resource_busy():
    assert messaging_provider.is_resource_busy(OSError(errno.EBUSY, "busy"))
    assert not messaging_provider.is_resource_busy(OSError(errno.ENOENT, "missing"))
