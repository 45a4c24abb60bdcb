"""
Shared pytest fixtures: generated PNG payloads, fake capture strategies and
stores rooted in tmp_path so no test touches the real screen or home dir.
"""

import asyncio
from pathlib import Path

import numpy as np
import pytest
import yaml

from capture import CapturedFrame, CaptureOrchestrator, CaptureStrategy
from image_ops import encode_capture_payload
from screenshot_service import ScreenshotService
from settings import build_settings
from storage import ArtifactStore


def make_png(width: int = 64, height: int = 64, seed: int = 0) -> bytes:
    # random noise does not compress, so the PNG stays well above 1KB
    rng = np.random.default_rng(seed)
    pixels = rng.integers(0, 256, size=(height, width, 3), dtype=np.uint8)
    return encode_capture_payload(pixels)


class StaticStrategy(CaptureStrategy):
    """Strategy returning a fixed payload, raising a fixed error, or stalling."""

    def __init__(self, name, payload=None, error=None, delay=0.0, timeout=1.0, temp_file=None, **kwargs):
        super().__init__(timeout, **kwargs)
        self.name = name
        self.payload = payload
        self.error = error
        self.delay = delay
        self.temp_file = temp_file
        self.calls = 0

    async def _acquire(self, temp_dir: Path) -> CapturedFrame:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return CapturedFrame(self.payload, self.temp_file)


class RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def png_bytes():
    return make_png()


@pytest.fixture
def png_factory():
    return make_png


@pytest.fixture
def static_strategy():
    return StaticStrategy


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def dirs(tmp_path):
    return {
        "primary": tmp_path / "data" / "screenshots",
        "secondary": tmp_path / "data" / "extra_screenshots",
        "temp": tmp_path / "tmp" / "snapqueue-screenshots",
    }


@pytest.fixture
def store(dirs):
    store = ArtifactStore(dirs["primary"], dirs["secondary"], capacity=5)
    store.ensure_directories()
    return store


@pytest.fixture
def make_service(dirs, png_bytes, recording_sleep):
    def factory(strategies=None, mode="queue", capacity=5):
        strategies = strategies or [StaticStrategy("static", payload=png_bytes)]
        orchestrator = CaptureOrchestrator(strategies, dirs["temp"], sleep=recording_sleep)
        store = ArtifactStore(dirs["primary"], dirs["secondary"], capacity=capacity)
        return ScreenshotService(orchestrator, store, mode=mode)

    return factory


@pytest.fixture
def settings_file(tmp_path):
    path = tmp_path / "settings.yaml"
    path.write_text(
        yaml.safe_dump(
            {
                "capture": {"max_retries": 1, "backoff_base_ms": 10},
                "storage": {"data_dir": str(tmp_path / "data"), "max_screenshots": 3},
            }
        ),
        encoding="utf-8",
    )
    return path


@pytest.fixture
def settings(settings_file):
    return build_settings(yaml.safe_load(settings_file.read_text(encoding="utf-8")))
