"""
Fixtures partilhadas pelos testes.
"""
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.database import Base
from app.core.exceptions import DeviceError
from app.models.profile import Profile  # noqa: F401  (regista a tabela profiles)
from app.utils.storage_manager import StorageManager
from fakes import FakeCaptureDevice, FakeFFmpeg, FakeProbe


@pytest.fixture
def storage(tmp_path) -> StorageManager:
    manager = StorageManager(base_path=str(tmp_path / "storage"), public_base_url="http://testserver/media")
    manager.ensure_structure()
    return manager


@pytest.fixture
def session_factory():
    """SQLite em memória partilhado entre sessões."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    engine.dispose()


@pytest.fixture
def fake_probe() -> FakeProbe:
    return FakeProbe()


@pytest.fixture
def fake_ffmpeg() -> FakeFFmpeg:
    return FakeFFmpeg()


@pytest.fixture
def device() -> FakeCaptureDevice:
    return FakeCaptureDevice()


@pytest.fixture
def denied_device() -> FakeCaptureDevice:
    return FakeCaptureDevice(error=DeviceError("Acesso à câmara negado", reason="permission_denied"))
