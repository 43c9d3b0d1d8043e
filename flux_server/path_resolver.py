import os
import re
from datetime import datetime, timezone
from typing import Optional

from flux_server.errors import validation_error

MAX_STEM_LENGTH = 50


def slugify_prompt(prompt: str, maxlen: int = MAX_STEM_LENGTH) -> str:
    """Turn a prompt into a filename stem: `A Red Fox!` -> `a_red_fox`."""
    text = prompt.lower()
    text = re.sub(r"[^a-z0-9\s]", "", text)
    text = re.sub(r"\s+", "_", text)
    return text[:maxlen]


def format_timestamp(now: Optional[datetime] = None) -> str:
    """UTC timestamp with second resolution, safe for filenames."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    return now.strftime("%Y-%m-%dT%H-%M-%S")


def generate_filename(prompt: str, output_format: str, now: Optional[datetime] = None) -> str:
    stem = slugify_prompt(prompt) or "image"
    return f"{stem}_{format_timestamp(now)}.{output_format}"


def check_output_path(output_path: Optional[str]) -> None:
    if output_path and not os.path.isabs(output_path):
        raise validation_error(
            "output_path must be an absolute path. Relative paths are not supported "
            "because the client and server may run in different environments."
        )


def resolve_output_path(
    output_path: Optional[str],
    prompt: str,
    default_format: str,
    working_directory: str,
    now: Optional[datetime] = None,
) -> str:
    """Return the absolute path the generated image will be written to.

    An explicit output_path must already be absolute and is returned as-is.
    Relative paths are rejected: the client may not share our working
    directory. Without one, a filename is derived from the prompt inside
    the working directory. Nothing is created on disk here.
    """
    if output_path:
        check_output_path(output_path)
        return output_path

    return os.path.join(working_directory, generate_filename(prompt, default_format, now))
