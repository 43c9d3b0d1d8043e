from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class GenerationRequest:
    """A validated generate_image call."""

    prompt: str
    model: str
    width: int
    height: int
    quality: int
    output_path: Optional[str] = None


@dataclass
class GenerationResult:
    image_urls: list[str] = field(default_factory=list)
    processing_time_ms: int = 0
    prediction_id: Optional[str] = None


@dataclass
class ProcessedAsset:
    output_path: str
    file_size: int       # bytes on disk
    width: int
    height: int


@dataclass
class ToolResponse:
    text: str
    is_error: bool = False
