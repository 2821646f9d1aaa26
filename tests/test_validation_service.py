"""
Testes da validação de vídeos (tamanho, formato, duração).
"""
import asyncio

import pytest
from hypothesis import given, strategies as st

from app.schemas.media import MediaFile, MediaSource
from app.services.validation_service import SizeBasedDurationEstimator, ValidationPipeline
from app.utils.storage_manager import StorageManager
from fakes import MB, FakeProbe


def make_file(size: int, mime_type: str = "video/webm", name: str = "clip.webm") -> MediaFile:
    return MediaFile(data=b"\x00" * size, mime_type=mime_type, name=name)


@pytest.fixture
def validator(storage, fake_probe) -> ValidationPipeline:
    return ValidationPipeline(probe=fake_probe, storage=storage)


@given(
    size=st.integers(min_value=1001, max_value=4000),
    mime_type=st.sampled_from(["video/webm", "video/mp4", "image/png", "application/pdf", ""]),
    duration=st.floats(min_value=0.5, max_value=600)
)
def test_oversized_file_always_rejected_for_size(size, mime_type, duration):
    validator = ValidationPipeline(
        probe=FakeProbe(duration=duration),
        storage=StorageManager(base_path="/nonexistent/storage"),
        max_size_bytes=1000
    )
    result = asyncio.run(validator.validate(make_file(size, mime_type), MediaSource.UPLOADED))

    assert result.valid is False
    assert result.constraint == "size"


@pytest.mark.asyncio
async def test_size_reason_includes_limit_and_current_size(validator):
    result = await validator.validate(make_file(52 * MB))

    assert result.constraint == "size"
    assert result.reason == "O ficheiro deve ter menos de 50MB. Tamanho atual: 52.0MB"


@pytest.mark.asyncio
async def test_unsupported_format_rejected(validator, fake_probe):
    result = await validator.validate(make_file(MB, "image/gif", "cat.gif"))

    assert result.valid is False
    assert result.constraint == "format"
    assert "MP4, WebM, OGG ou MOV" in result.reason
    assert fake_probe.calls == []


@pytest.mark.asyncio
async def test_mime_parameters_are_ignored(validator):
    result = await validator.validate(make_file(MB, "video/webm;codecs=vp9"))
    assert result.valid is True


@pytest.mark.asyncio
@pytest.mark.parametrize("mime_type", ["video/mp4", "video/webm", "video/ogg", "video/quicktime"])
async def test_accepted_formats(validator, mime_type):
    result = await validator.validate(make_file(MB, mime_type, "clip"))
    assert result.valid is True
    assert result.duration_seconds == 15.0
    assert result.duration_estimated is False


@pytest.mark.asyncio
async def test_short_upload_rejected(storage):
    validator = ValidationPipeline(probe=FakeProbe(duration=5.0), storage=storage)
    result = await validator.validate(make_file(MB), MediaSource.UPLOADED)

    assert result.valid is False
    assert result.constraint == "duration"
    assert result.reason == "O vídeo deve ter pelo menos 10 segundos. Duração atual: 5.0s"


@pytest.mark.asyncio
async def test_short_recording_allowed(storage):
    validator = ValidationPipeline(probe=FakeProbe(duration=5.0), storage=storage)
    result = await validator.validate(make_file(MB), MediaSource.RECORDED)

    assert result.valid is True
    assert result.duration_seconds == 5.0


@pytest.mark.asyncio
@pytest.mark.parametrize("source", [MediaSource.RECORDED, MediaSource.UPLOADED])
async def test_long_video_rejected_for_any_source(storage, source):
    validator = ValidationPipeline(probe=FakeProbe(duration=75.0), storage=storage)
    result = await validator.validate(make_file(MB), source)

    assert result.valid is False
    assert result.reason == "O vídeo deve ter menos de 60 segundos. Duração atual: 75.0s"


@pytest.mark.asyncio
async def test_missing_duration_is_estimated_from_size(storage):
    validator = ValidationPipeline(probe=FakeProbe(duration=None), storage=storage)
    result = await validator.validate(make_file(12 * MB), MediaSource.UPLOADED)

    assert result.valid is True
    assert result.duration_estimated is True
    assert result.duration_seconds == pytest.approx(12.0)


@pytest.mark.asyncio
async def test_estimated_duration_is_clamped(storage):
    validator = ValidationPipeline(probe=FakeProbe(duration=None), storage=storage)

    duration, estimated = await validator.read_duration(make_file(10))
    assert estimated is True
    assert duration == 1.0

    duration, _ = await validator.read_duration(make_file(45 * MB))
    assert duration == 45.0

    validator.estimator = SizeBasedDurationEstimator(bytes_per_second=1024)
    duration, _ = await validator.read_duration(make_file(MB))
    assert duration == 60.0


@pytest.mark.asyncio
async def test_probe_temp_file_is_removed(storage, fake_probe, validator):
    await validator.validate(make_file(MB))

    assert len(fake_probe.calls) == 1
    assert storage.list_files(str(storage.get_temp_path())) == []
