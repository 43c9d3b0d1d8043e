import logging
import os
from typing import Optional

from flux_server.config import Config, calculate_cost
from flux_server.errors import FluxError, processing_error, validation_error
from flux_server.log import log_event
from flux_server.models import GenerationRequest, ProcessedAsset, ToolResponse
from flux_server.path_resolver import check_output_path, resolve_output_path
from flux_server.temp_manager import TempManager

logger = logging.getLogger(__name__)


def _optional_int(args: dict, name: str, default: int, low: int = 1, high: Optional[int] = None) -> int:
    value = args.get(name)
    if value is None:
        return default
    # bool is an int subclass but never a valid size
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise validation_error(f"{name} must be an integer")
    if isinstance(value, float) and not value.is_integer():
        raise validation_error(f"{name} must be an integer")
    value = int(value)
    if value < low or (high is not None and value > high):
        bounds = f"between {low} and {high}" if high is not None else f"at least {low}"
        raise validation_error(f"{name} must be {bounds}")
    return value


class Orchestrator:
    """Runs one generate_image call from raw arguments to a file on disk.

    Collaborators are injected:
      - client: is_model_supported / get_available_models / generate_image / download_image
      - processor: process_image
      - temp_manager: shared with the shutdown handler
    """

    def __init__(self, config: Config, working_directory: str, client, processor, temp_manager: TempManager):
        self.config = config
        self.working_directory = working_directory
        self.client = client
        self.processor = processor
        self.temp_manager = temp_manager

    def handle(self, arguments) -> ToolResponse:
        """Handle a tool call. Never raises."""
        try:
            return self._generate(arguments)
        except Exception as e:
            self.temp_manager.cleanup_all()
            if isinstance(e, FluxError):
                err = e
            else:
                logger.exception("Unexpected error during image generation")
                err = processing_error("Unknown error occurred")
            log_event(logger, logging.ERROR, "Image generation failed",
                      error=err.message, kind=err.kind.value, args=arguments)
            return ToolResponse(text=f"Error: {err.message}", is_error=True)

    def parse_request(self, arguments) -> GenerationRequest:
        if not isinstance(arguments, dict):
            raise validation_error("Tool arguments must be an object")

        prompt = arguments.get("prompt")
        if not isinstance(prompt, str) or not prompt.strip():
            raise validation_error("Prompt is required and must be a non-empty string")

        output_path = arguments.get("output_path") or None
        if output_path is not None and not isinstance(output_path, str):
            raise validation_error("output_path must be a string")
        check_output_path(output_path)

        model = arguments.get("model") or self.config.default_model
        if not isinstance(model, str) or not self.client.is_model_supported(model):
            raise validation_error(
                f"Unsupported model: {model}. "
                f"Supported models: {', '.join(self.client.get_available_models())}"
            )

        return GenerationRequest(
            prompt=prompt.strip(),
            model=model,
            output_path=output_path,
            width=_optional_int(arguments, "width", self.config.default_width),
            height=_optional_int(arguments, "height", self.config.default_height),
            quality=_optional_int(arguments, "quality", self.config.output_quality, 1, 100),
        )

    def _generate(self, arguments) -> ToolResponse:
        request = self.parse_request(arguments)
        output_path = resolve_output_path(
            request.output_path,
            request.prompt,
            self.config.output_format,
            self.working_directory,
        )

        log_event(logger, logging.INFO, "Starting image generation",
                  prompt=request.prompt, model=request.model, output_path=request.output_path,
                  resolved_output_path=output_path, working_directory=self.working_directory,
                  width=request.width, height=request.height)

        result = self.client.generate_image(
            prompt=request.prompt,
            model=request.model,
            width=request.width,
            height=request.height,
        )
        if not result.image_urls:
            raise processing_error("No images were generated")
        image_url = result.image_urls[0]
        if not image_url:
            raise processing_error("No valid image URL returned")

        data = self.client.download_image(image_url)

        try:
            os.makedirs(os.path.dirname(output_path), exist_ok=True)
        except OSError as e:
            raise processing_error(f"Cannot create output directory: {e}")

        asset = self.processor.process_image(
            data,
            output_path=output_path,
            quality=request.quality,
            width=request.width,
            height=request.height,
        )
        cost = calculate_cost(request.model)

        log_event(logger, logging.INFO, "Image generation completed",
                  output_path=asset.output_path, file_size=asset.file_size,
                  dimensions=f"{asset.width}x{asset.height}",
                  processing_time=result.processing_time_ms, model=request.model,
                  cost=f"${cost:.3f}")

        return ToolResponse(text=self.format_summary(request.model, asset, result.processing_time_ms, cost))

    def format_summary(self, model: str, asset: ProcessedAsset, processing_time_ms: int, cost: float) -> str:
        return (
            "Image generated successfully!\n\n"
            f"Output: {asset.output_path}\n"
            f"Model: {model}\n"
            f"Dimensions: {asset.width}x{asset.height}\n"
            f"File size: {round(asset.file_size / 1024)}KB\n"
            f"Processing time: {processing_time_ms}ms\n"
            f"Cost: ${cost:.3f}\n"
            f"Working Directory: {self.working_directory}"
        )
