"""
Testes do gestor de streams da câmara.
"""
import pytest

from app.core.exceptions import DeviceError
from app.services.stream_resource_manager import StreamResourceManager
from fakes import FakeCaptureDevice


@pytest.mark.asyncio
async def test_acquire_returns_active_stream(device):
    manager = StreamResourceManager(device)
    stream = await manager.acquire()

    assert stream.active is True
    assert manager.has_stream is True
    assert {track.kind for track in stream.get_tracks()} == {"video", "audio"}


@pytest.mark.asyncio
async def test_acquire_releases_previous_stream(device):
    manager = StreamResourceManager(device)
    first = await manager.acquire()
    second = await manager.acquire()

    assert first.active is False
    assert second.active is True
    assert manager.stream is second


@pytest.mark.asyncio
async def test_release_twice_is_noop(device):
    manager = StreamResourceManager(device)
    stream = await manager.acquire()

    manager.release()
    manager.release()
    manager.release(stream)

    assert stream.active is False
    assert manager.stream is None


def test_release_without_stream_is_noop(device):
    StreamResourceManager(device).release()


@pytest.mark.asyncio
async def test_device_error_propagates(denied_device):
    manager = StreamResourceManager(denied_device)

    with pytest.raises(DeviceError) as exc_info:
        await manager.acquire()

    assert exc_info.value.reason == "permission_denied"
    assert manager.has_stream is False


@pytest.mark.asyncio
@pytest.mark.parametrize("error, reason", [
    (PermissionError("denied"), "permission_denied"),
    (OSError("device busy"), "unavailable"),
])
async def test_os_errors_become_device_errors(error, reason):
    manager = StreamResourceManager(FakeCaptureDevice(error=error))

    with pytest.raises(DeviceError) as exc_info:
        await manager.acquire()

    assert exc_info.value.reason == reason
    assert exc_info.value.cause


def test_select_first_supported_mime_type(device):
    manager = StreamResourceManager(device)
    assert manager.select_mime_type() == "video/webm;codecs=vp9"
    assert manager.select_mime_type(["video/mp4", "video/webm"]) == "video/webm"


def test_select_mime_type_none_supported():
    manager = StreamResourceManager(FakeCaptureDevice(supported=[]))

    with pytest.raises(DeviceError) as exc_info:
        manager.select_mime_type()

    assert exc_info.value.reason == "unsupported"


@pytest.mark.asyncio
async def test_create_recorder_requires_stream(device):
    manager = StreamResourceManager(device)

    with pytest.raises(DeviceError):
        manager.create_recorder("video/webm")

    await manager.acquire()
    recorder = manager.create_recorder("video/webm")
    assert recorder.mime_type == "video/webm"
