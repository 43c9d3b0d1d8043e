"""Tests for output path resolution."""

import os
import re
from datetime import datetime, timedelta, timezone

import pytest

from flux_server.errors import ErrorKind, FluxError
from flux_server.path_resolver import (
    format_timestamp,
    generate_filename,
    resolve_output_path,
    slugify_prompt,
)

FIXED_NOW = datetime(2024, 5, 1, 12, 30, 45, 678000, tzinfo=timezone.utc)


def test_filename_from_prompt_is_deterministic():
    assert generate_filename("A Red Fox, Running!", "png", FIXED_NOW) == "a_red_fox_running_2024-05-01T12-30-45.png"


def test_filename_matches_expected_shape_with_current_time():
    name = generate_filename("A Red Fox, Running!", "png")
    assert re.fullmatch(r"a_red_fox_running_\d{4}-\d{2}-\d{2}T\d{2}-\d{2}-\d{2}\.png", name)


def test_whitespace_runs_collapse_to_single_underscore():
    assert slugify_prompt("sunset   over\tthe\n mountains") == "sunset_over_the_mountains"


def test_slug_truncated_to_50_characters():
    slug = slugify_prompt("word " * 30)
    assert len(slug) == 50
    assert slug.startswith("word_word_")


def test_prompt_without_usable_characters_falls_back_to_image():
    assert generate_filename("!!!", "jpg", FIXED_NOW) == "image_2024-05-01T12-30-45.jpg"


def test_timestamp_is_converted_to_utc():
    plus_two = timezone(timedelta(hours=2))
    local = datetime(2024, 5, 1, 14, 30, 45, tzinfo=plus_two)
    assert format_timestamp(local) == "2024-05-01T12-30-45"


def test_absent_output_path_lands_in_working_directory(tmp_path):
    path = resolve_output_path(None, "sunset over mountains", "jpg", str(tmp_path), FIXED_NOW)
    assert path == os.path.join(str(tmp_path), "sunset_over_mountains_2024-05-01T12-30-45.jpg")
    assert os.path.isabs(path)


def test_absolute_output_path_returned_unchanged(tmp_path):
    target = str(tmp_path / "nested" / "picture.gif")
    assert resolve_output_path(target, "ignored", "png", "/unused") == target


@pytest.mark.parametrize("relative", ["out.png", "images/out.png", "./out.png", "../out.png"])
def test_relative_output_path_is_rejected(relative):
    with pytest.raises(FluxError) as exc_info:
        resolve_output_path(relative, "prompt", "png", "/work")
    assert exc_info.value.kind is ErrorKind.VALIDATION
    assert "absolute path" in exc_info.value.message


def test_resolution_creates_nothing(tmp_path):
    resolve_output_path(None, "a cat", "png", str(tmp_path))
    resolve_output_path(str(tmp_path / "sub" / "x.png"), "a cat", "png", str(tmp_path))
    assert list(tmp_path.iterdir()) == []
