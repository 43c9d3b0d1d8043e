import io
import logging
import os

from PIL import Image, UnidentifiedImageError

from flux_server.errors import processing_error
from flux_server.log import log_event
from flux_server.models import ProcessedAsset
from flux_server.temp_manager import TempManager

logger = logging.getLogger(__name__)


def format_for_path(path: str) -> str:
    """Pillow format name for the path's extension, e.g. `.jpg` -> `JPEG`."""
    ext = os.path.splitext(path)[1].lower()
    image_format = Image.registered_extensions().get(ext)
    if not image_format or image_format not in Image.SAVE:
        raise processing_error(f"Unsupported output format: {ext or '(none)'}")
    return image_format


class ImageProcessor:
    """Resizes downloaded images and writes them atomically."""

    def __init__(self, temp_manager: TempManager):
        self.temp_manager = temp_manager

    def process_image(self, data: bytes, output_path: str, quality: int, width: int, height: int) -> ProcessedAsset:
        image_format = format_for_path(output_path)

        try:
            image = Image.open(io.BytesIO(data))
            image.load()
        except (UnidentifiedImageError, OSError) as e:
            raise processing_error(f"Invalid image data: {e}")

        if image.size != (width, height):
            image = image.resize((width, height), Image.Resampling.LANCZOS)

        save_kwargs = {}
        if image_format == "JPEG":
            if image.mode != "RGB":
                image = image.convert("RGB")
            save_kwargs.update(quality=quality, optimize=True)
        elif image_format == "WEBP":
            save_kwargs["quality"] = quality

        # Write next to the target so os.replace stays on one filesystem
        directory = os.path.dirname(output_path) or "."
        try:
            temp_path = self.temp_manager.create_temp_file(directory, suffix=".part")
            with open(temp_path, "wb") as f:
                image.save(f, format=image_format, **save_kwargs)
            os.replace(temp_path, output_path)
            self.temp_manager.untrack(temp_path)
            file_size = os.path.getsize(output_path)
        except (OSError, ValueError) as e:
            raise processing_error(f"Failed to write image to {output_path}: {e}")

        log_event(logger, logging.DEBUG, "Image written",
                  path=output_path, format=image_format, bytes=file_size)
        return ProcessedAsset(
            output_path=output_path,
            file_size=file_size,
            width=image.width,
            height=image.height,
        )
