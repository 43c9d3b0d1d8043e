"""Shared pytest fixtures for flux_server tests."""

import io
import os

import pytest
from PIL import Image

from flux_server.config import MODEL_SLUGS, Config
from flux_server.models import GenerationResult, ProcessedAsset
from flux_server.orchestrator import Orchestrator
from flux_server.temp_manager import TempManager

# ============================================================================
# Fakes
# ============================================================================


class FakeClient:
    """Stands in for ReplicateClient and records every remote call."""

    def __init__(self, image_urls=None, data=b"image-bytes", processing_time_ms=1234, error=None):
        self.image_urls = ["https://replicate.delivery/out-0.png"] if image_urls is None else image_urls
        self.data = data
        self.processing_time_ms = processing_time_ms
        self.error = error
        self.calls = []

    def is_model_supported(self, model):
        return model in MODEL_SLUGS

    def get_available_models(self):
        return list(MODEL_SLUGS)

    def generate_image(self, prompt, model, width, height):
        self.calls.append(("generate_image", prompt, model, width, height))
        if self.error is not None:
            raise self.error
        return GenerationResult(image_urls=list(self.image_urls), processing_time_ms=self.processing_time_ms)

    def download_image(self, url):
        self.calls.append(("download_image", url))
        return self.data


class FakeProcessor:
    """Writes a file of a fixed size instead of decoding anything."""

    def __init__(self, file_size=200000):
        self.file_size = file_size
        self.calls = []

    def process_image(self, data, output_path, quality, width, height):
        self.calls.append({"output_path": output_path, "quality": quality, "width": width, "height": height})
        with open(output_path, "wb") as f:
            f.write(b"\0" * self.file_size)
        return ProcessedAsset(output_path=output_path, file_size=self.file_size, width=width, height=height)


class CountingTempManager(TempManager):
    def __init__(self):
        super().__init__()
        self.cleanup_calls = 0

    def cleanup_all(self):
        self.cleanup_calls += 1
        super().cleanup_all()


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def config() -> Config:
    return Config(replicate_api_token="r8_test", output_format="png")


@pytest.fixture
def working_dir(tmp_path) -> str:
    path = tmp_path / "work"
    path.mkdir()
    return str(path)


@pytest.fixture
def client() -> FakeClient:
    return FakeClient()


@pytest.fixture
def processor() -> FakeProcessor:
    return FakeProcessor()


@pytest.fixture
def temp_manager() -> CountingTempManager:
    return CountingTempManager()


@pytest.fixture
def orchestrator(config, working_dir, client, processor, temp_manager) -> Orchestrator:
    return Orchestrator(
        config=config,
        working_directory=working_dir,
        client=client,
        processor=processor,
        temp_manager=temp_manager,
    )


@pytest.fixture
def png_bytes() -> bytes:
    image = Image.new("RGB", (64, 48), (200, 40, 40))
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def list_files(directory) -> list[str]:
    found = []
    for root, _, files in os.walk(directory):
        found.extend(os.path.join(root, name) for name in files)
    return sorted(found)
