"""Shared pytest fixtures for Past Forward tests."""

import asyncio
import hashlib
import shutil
import tempfile
from pathlib import Path
from typing import Generator
from unittest.mock import patch

import pytest
from PIL import Image

from pastforward.core.config import PastForwardConfig
from pastforward.core.errors import GenerationFailure
from pastforward.core.images import encode_png, to_data_url
from pastforward.core.session import PastForwardSession

TEST_DECADES = ["1950s", "1960s", "1970s"]


def make_png(size: tuple[int, int] = (48, 64), color: tuple[int, int, int] = (120, 90, 60)) -> bytes:
    """Encode a solid-colour PNG."""
    return encode_png(Image.new("RGB", size, color))


class FakeGeneratorClient:
    """Scriptable in-memory generator client.

    Attributes:
        failures: Decade label -> error message; each failure fires once.
        delay: Seconds slept inside every call.
        gate: Optional event every call waits on before answering.
        calls: Prompts received, in call order.
        in_flight: Calls currently awaiting a result.
        max_in_flight: Highest ``in_flight`` value observed.
    """

    name = "fake"

    def __init__(self, failures=None, delay: float = 0.0, gate: asyncio.Event | None = None):
        self.failures = dict(failures or {})
        self.delay = delay
        self.gate = gate
        self.calls: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def generate(self, source_image: str, prompt: str) -> str:
        self.calls.append(prompt)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.gate is not None:
                await self.gate.wait()
            await asyncio.sleep(self.delay)
            for label in list(self.failures):
                if f"style of the {label}." in prompt:
                    raise GenerationFailure(self.failures.pop(label))
            digest = hashlib.sha256(prompt.encode("utf-8")).digest()
            return to_data_url(make_png(color=(digest[0], digest[1], digest[2])))
        finally:
            self.in_flight -= 1


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files.

    Yields:
        Path to temporary directory

    Cleanup:
        Directory is removed after test completes
    """
    temp_path = Path(tempfile.mkdtemp())
    try:
        yield temp_path
    finally:
        shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def test_config(temp_dir: Path) -> PastForwardConfig:
    """Create a test configuration with a short catalog and offline backend.

    Args:
        temp_dir: Temporary directory from fixture

    Returns:
        PastForwardConfig instance for testing
    """
    return PastForwardConfig(
        _env_file=None,
        decades=list(TEST_DECADES),
        worker_count=2,
        generator_backend="dryrun",
        generator_retry_delay=0.0,
        outputs_dir=temp_dir / "outputs",
        album_jpeg_quality=80,
    )


@pytest.fixture
def sample_photo() -> str:
    """A small portrait photo as a PNG data URL."""
    return to_data_url(make_png(), "image/png")


@pytest.fixture
def fake_client() -> FakeGeneratorClient:
    """Generator client that succeeds for every decade."""
    return FakeGeneratorClient()


@pytest.fixture
def session(test_config: PastForwardConfig, fake_client: FakeGeneratorClient) -> PastForwardSession:
    """Fresh session over the test catalog and the fake client."""
    return PastForwardSession(test_config, fake_client)


@pytest.fixture
def test_client(test_config: PastForwardConfig, fake_client: FakeGeneratorClient):
    """FastAPI TestClient whose session uses the test config and fake client.

    Entering the client runs the application lifespan, so ``app.state.session``
    is rebuilt for every test.
    """
    from fastapi.testclient import TestClient

    from pastforward.api.main import app

    with patch("pastforward.api.main.config", test_config), patch(
        "pastforward.api.main.build_generator_client", return_value=fake_client
    ):
        with TestClient(app) as client:
            yield client


@pytest.fixture
def png_factory():
    """Return :func:`make_png` for tests that need custom image bytes."""
    return make_png


@pytest.fixture
def client_factory():
    """Return :class:`FakeGeneratorClient` for tests that script failures or timing."""
    return FakeGeneratorClient
