"""Tests for object key composition."""

import re

import pytest

from tubely.models.video import VideoLayout
from tubely.services.storage_keys import compose_video_key


KEY_PATTERN = re.compile(r"^(landscape|portrait|other)/[0-9a-f]{64}\.mp4$")


@pytest.mark.parametrize("layout", list(VideoLayout))
def test_key_is_namespaced_by_layout(layout: VideoLayout) -> None:
    key = compose_video_key(layout)

    assert key.startswith(f"{layout.value}/")
    assert KEY_PATTERN.match(key)


def test_keys_are_unique() -> None:
    keys = {compose_video_key(VideoLayout.LANDSCAPE) for _ in range(1000)}
    assert len(keys) == 1000


def test_custom_extension() -> None:
    assert compose_video_key(VideoLayout.OTHER, extension=".webm").endswith(".webm")
