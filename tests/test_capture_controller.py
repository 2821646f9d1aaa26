"""
Testes da máquina de estados do controlador de captura.
"""
import asyncio

import pytest

from app.core.exceptions import DeviceError, InvalidStateTransition, UploadError, ValidationError
from app.schemas.media import MediaFile, MediaSource
from app.schemas.profile_video import VideoDetailsSchema
from app.services.capture_controller import TRANSITIONS, CaptureController, CaptureState
from app.services.compression_service import CompressionEngine
from app.services.media_pipeline import MediaPipeline
from app.services.stream_resource_manager import StreamResourceManager
from app.services.thumbnail_service import ThumbnailExtractor
from app.services.validation_service import ValidationPipeline
from app.services.video_profile_service import VideoProfileService
from fakes import MB, CrashingCaptureDevice, FakeCaptureDevice, FakeFFmpeg, FakeGateway, FakeProbe

DETAILS = VideoDetailsSchema(desired_roles=["Engenheira de Software"], desired_location="Lisboa")


class BlockingProbe(FakeProbe):
    """Probe que só responde quando `release` é sinalizado."""

    def __init__(self, duration: float = 15.0):
        super().__init__(duration=duration)
        self.release = asyncio.Event()
        self.entered = asyncio.Event()

    async def probe(self, file_path, timeout=None):
        self.entered.set()
        await self.release.wait()
        return await super().probe(file_path, timeout)


def build_controller(storage, device, probe=None, gateway=None, countdown_seconds=0) -> CaptureController:
    probe = probe or FakeProbe(duration=15.0)
    ffmpeg = FakeFFmpeg()
    pipeline = MediaPipeline(
        validator=ValidationPipeline(probe=probe, storage=storage),
        thumbnailer=ThumbnailExtractor(ffmpeg=ffmpeg, storage=storage),
        compressor=CompressionEngine(ffmpeg=ffmpeg, storage=storage),
        probe=probe,
        storage=storage
    )
    return CaptureController(
        streams=StreamResourceManager(device),
        pipeline=pipeline,
        profiles=VideoProfileService(gateway or FakeGateway()),
        storage=storage,
        countdown_seconds=countdown_seconds
    )


async def record(controller: CaptureController, **kwargs):
    await controller.start_capture(**kwargs)
    await controller.wait_for_state(CaptureState.RECORDING, timeout=2)
    return await controller.stop_recording()


def test_every_state_can_reach_idle():
    assert CaptureState.IDLE not in TRANSITIONS[CaptureState.IDLE]
    assert TRANSITIONS[CaptureState.SAVED] == {CaptureState.IDLE}
    for state, targets in TRANSITIONS.items():
        assert CaptureState.IDLE in targets or state == CaptureState.IDLE


@pytest.mark.asyncio
async def test_record_review_and_save(storage, device):
    gateway = FakeGateway()
    controller = build_controller(storage, device, gateway=gateway)

    asset = await record(controller)

    assert controller.state == CaptureState.READY_FOR_REVIEW
    assert asset.source == MediaSource.RECORDED
    assert asset.size_bytes == 2 * MB
    assert asset.file.name.startswith("intro_video_")
    assert asset.file.name.endswith(".webm")
    assert device.opened[0].active is False
    assert controller.preview_path.exists()

    controller.accept()
    assert controller.state == CaptureState.FINALIZING

    saved = await controller.finalize("user-1", DETAILS)

    assert controller.state == CaptureState.SAVED
    assert saved.intro_video_url
    assert gateway.upserts[0]["desired_location"] == "Lisboa"
    assert controller.snapshot().saved == saved

    preview = controller.preview_path
    await controller.reset()
    assert controller.state == CaptureState.IDLE
    assert not preview.exists()


@pytest.mark.asyncio
async def test_device_error_returns_to_idle(storage, denied_device):
    controller = build_controller(storage, denied_device)

    with pytest.raises(DeviceError):
        await controller.start_capture()

    assert controller.state == CaptureState.IDLE
    assert controller.last_error == "Acesso à câmara negado"


@pytest.mark.asyncio
async def test_unsupported_recorder_format_returns_to_idle(storage):
    device = FakeCaptureDevice(supported=[])
    controller = build_controller(storage, device)

    with pytest.raises(DeviceError):
        await controller.start_capture()

    assert controller.state == CaptureState.IDLE
    assert device.opened[0].active is False


@pytest.mark.asyncio
async def test_invalid_calls_rejected(storage, device):
    controller = build_controller(storage, device)

    with pytest.raises(InvalidStateTransition):
        await controller.stop_recording()
    with pytest.raises(InvalidStateTransition):
        controller.accept()
    with pytest.raises(InvalidStateTransition):
        await controller.finalize("user-1", DETAILS)
    with pytest.raises(InvalidStateTransition):
        await controller.reset()
    with pytest.raises(InvalidStateTransition):
        await controller.retake()

    assert controller.state == CaptureState.IDLE


@pytest.mark.asyncio
async def test_start_twice_rejected(storage, device):
    controller = build_controller(storage, device, countdown_seconds=1)
    await controller.start_capture()

    with pytest.raises(InvalidStateTransition):
        await controller.start_capture()

    await controller.cancel()


@pytest.mark.asyncio
async def test_countdown_precedes_recording(storage, device):
    seen = []
    controller = build_controller(storage, device, countdown_seconds=1)
    controller.on_countdown = seen.append

    await controller.start_capture()

    assert controller.state == CaptureState.PREVIEWING
    await asyncio.sleep(0)
    assert controller.snapshot().countdown == 1

    await controller.wait_for_state(CaptureState.RECORDING, timeout=3)
    assert seen == [1]
    assert device.recorders[0].started is True
    await controller.cancel()


@pytest.mark.asyncio
async def test_cancel_during_recording_releases_everything(storage, device):
    controller = build_controller(storage, device)
    await controller.start_capture()
    await controller.wait_for_state(CaptureState.RECORDING, timeout=2)

    await controller.cancel()

    assert controller.state == CaptureState.IDLE
    assert device.opened[0].active is False
    assert device.recorders[0].stop_calls == 1
    assert controller.snapshot().asset is None


@pytest.mark.asyncio
async def test_cancel_in_saved_rejected(storage, device):
    controller = build_controller(storage, device)
    await record(controller)
    controller.accept()
    await controller.finalize("user-1", DETAILS)

    with pytest.raises(InvalidStateTransition):
        await controller.cancel()


@pytest.mark.asyncio
async def test_empty_recording_rejected(storage):
    controller = build_controller(storage, FakeCaptureDevice(chunks=[]))

    with pytest.raises(ValidationError) as exc_info:
        await record(controller)

    assert exc_info.value.constraint == "size"
    assert controller.state == CaptureState.IDLE


@pytest.mark.asyncio
async def test_oversized_recording_rejected(storage, device):
    controller = build_controller(storage, device)
    controller.pipeline.validator.max_size_bytes = MB

    with pytest.raises(ValidationError) as exc_info:
        await record(controller)

    assert exc_info.value.constraint == "size"
    assert controller.state == CaptureState.IDLE
    assert controller.last_error


@pytest.mark.asyncio
async def test_recorder_failure_on_stop_returns_to_idle(storage):
    device = CrashingCaptureDevice()
    controller = build_controller(storage, device)
    await controller.start_capture()
    await controller.wait_for_state(CaptureState.RECORDING, timeout=2)

    with pytest.raises(DeviceError) as exc_info:
        await controller.stop_recording()

    assert "encoder crashed" in str(exc_info.value)
    assert controller.state == CaptureState.IDLE
    assert "encoder crashed" in controller.last_error
    assert controller.snapshot().asset is None
    assert device.opened[0].active is False
    assert device.recorders[0].stop_calls == 1

    await controller.start_capture()
    assert controller.state in (CaptureState.PREVIEWING, CaptureState.RECORDING)
    await controller.cancel()


@pytest.mark.asyncio
async def test_pipeline_failure_falls_back_to_raw_recording(storage, device):
    controller = build_controller(storage, device, probe=FakeProbe(duration=75.0))

    asset = await record(controller)

    assert controller.state == CaptureState.READY_FOR_REVIEW
    assert asset.thumbnail is None
    assert asset.size_bytes == 2 * MB
    assert asset.duration_seconds > 0
    assert asset.warnings


@pytest.mark.asyncio
async def test_auto_stop_after_max_seconds(storage, device):
    controller = build_controller(storage, device)

    await controller.start_capture(max_seconds=0.05)
    await controller.wait_for_state(CaptureState.READY_FOR_REVIEW, timeout=2)

    assert controller.asset is not None
    assert device.recorders[0].stop_calls >= 1


@pytest.mark.asyncio
async def test_upload_accepted(storage, device):
    controller = build_controller(storage, device)
    file = MediaFile(data=b"\x00" * MB, mime_type="video/mp4", name="apresentacao.mp4")

    asset = await controller.load_upload(file)

    assert controller.state == CaptureState.READY_FOR_REVIEW
    assert asset.source == MediaSource.UPLOADED
    assert controller.snapshot().source == "uploaded"
    assert device.opened == []


@pytest.mark.asyncio
async def test_invalid_upload_returns_to_idle(storage, device):
    controller = build_controller(storage, device, probe=FakeProbe(duration=5.0))
    file = MediaFile(data=b"\x00" * MB, mime_type="video/mp4", name="curto.mp4")

    with pytest.raises(ValidationError) as exc_info:
        await controller.load_upload(file)

    assert exc_info.value.constraint == "duration"
    assert controller.state == CaptureState.IDLE
    assert "10 segundos" in controller.last_error


@pytest.mark.asyncio
async def test_stale_result_discarded_after_cancel(storage, device):
    probe = BlockingProbe()
    controller = build_controller(storage, device, probe=probe)
    file = MediaFile(data=b"\x00" * MB, mime_type="video/webm", name="clip.webm")

    task = asyncio.create_task(controller.load_upload(file))
    await asyncio.wait_for(probe.entered.wait(), timeout=2)
    assert controller.state == CaptureState.PROCESSING

    await controller.cancel()
    probe.release.set()
    result = await task

    assert result is None
    assert controller.state == CaptureState.IDLE
    assert controller.asset is None
    assert storage.list_files(str(storage.get_temp_path())) == []


@pytest.mark.asyncio
async def test_retake_replaces_asset_and_preview(storage, device):
    controller = build_controller(storage, device)
    first = await record(controller)
    first_preview = controller.preview_path

    await controller.retake()

    assert controller.state == CaptureState.RECORDING
    assert controller.asset is None
    assert not first_preview.exists()
    assert len(device.opened) == 2

    second = await controller.stop_recording()

    assert controller.state == CaptureState.READY_FOR_REVIEW
    assert second.file.name != first.file.name
    assert controller.preview_path != first_preview
    assert len(storage.list_files(str(storage.get_temp_path()))) == 1


@pytest.mark.asyncio
async def test_finalize_failure_returns_to_review(storage, device):
    gateway = FakeGateway(fail_kinds={"video"})
    controller = build_controller(storage, device, gateway=gateway)
    await record(controller)
    controller.accept()

    with pytest.raises(UploadError):
        await controller.finalize("user-1", DETAILS)

    assert controller.state == CaptureState.READY_FOR_REVIEW
    assert controller.asset is not None
    assert controller.last_error

    gateway.fail_kinds.clear()
    controller.accept()
    await controller.finalize("user-1", DETAILS)
    assert controller.state == CaptureState.SAVED


@pytest.mark.asyncio
async def test_shutdown_releases_resources(storage, device):
    controller = build_controller(storage, device)
    await record(controller)
    preview = controller.preview_path

    await controller.shutdown()

    assert controller.state == CaptureState.IDLE
    assert not preview.exists()
    assert device.opened[0].active is False
