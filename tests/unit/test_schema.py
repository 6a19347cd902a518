"""Tests for table and bucket layout helpers."""

import pytest

from adplay_monitor import schema


def test_prefixes() -> None:
    assert schema.device_prefix("screen-01") == "screen-01/"
    assert schema.screenshot_prefix("screen-01") == "screen-01/screenshots/"


def test_object_basename() -> None:
    assert schema.object_basename("screen-01/promo.mp4") == "promo.mp4"
    assert schema.object_basename("promo.mp4") == "promo.mp4"


@pytest.mark.parametrize(
    ("key", "is_ad", "is_screenshot"),
    [
        ("screen-01/promo.mp4", True, False),
        ("screen-01/PROMO.MP4", True, False),
        ("screen-01/screenshots/s1.png", False, True),
        ("screen-01/notes.txt", False, False),
    ],
)
def test_key_kinds(key, is_ad, is_screenshot) -> None:
    assert schema.is_ad_key(key) is is_ad
    assert schema.is_screenshot_key(key) is is_screenshot
