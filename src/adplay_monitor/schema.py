"""Store and bucket layout: table, index and attribute names, key builders."""

# Table and index names
DEFAULT_PLAYS_TABLE = "attentv-ad-plays-prod"
DEVICE_INDEX_NAME = "device_id-timestamp-index"  # device_id -> timestamp
AD_INDEX_NAME = "ad_filename-timestamp-index"  # ad_filename -> timestamp

DEFAULT_LABELS_TABLE = "attentv-data-labels"
CHANNEL_INDEX_NAME = "channel-startTime-index"  # channel -> startTime

DEFAULT_MEDIA_BUCKET = "attentv-device-media"

# Play record attributes
ATTR_PLAY_ID = "play_id"
ATTR_DEVICE_ID = "device_id"
ATTR_AD_FILENAME = "ad_filename"
ATTR_TIMESTAMP = "timestamp"  # ISO-8601; written as millisecond UTC with a "Z" suffix
ATTR_PLAY_DURATION = "play_duration"
ATTR_PLAY_STATUS = "play_status"
ATTR_METADATA = "metadata"

# Data label attributes
ATTR_LABEL_ID = "id"
ATTR_CHANNEL = "channel"
ATTR_START_TIME = "startTime"
ATTR_STOP_TIME = "stopTime"
ATTR_DURATION = "duration"
ATTR_USER_NAME = "userName"
ATTR_IS_TEST = "is_test"

# Bucket layout: <device_id>/<ad>.mp4, <device_id>/screenshots/<shot>.png
PREFIX_DELIMITER = "/"
SCREENSHOTS_FOLDER = "screenshots"
AD_SUFFIX = ".mp4"
SCREENSHOT_SUFFIX = ".png"

# Top-level prefixes that are not devices
RESERVED_PREFIXES = ("ad_metrics",)


def device_prefix(device_id: str) -> str:
    """Build the bucket prefix holding a device's ad files."""
    return f"{device_id}{PREFIX_DELIMITER}"


def screenshot_prefix(device_id: str) -> str:
    """Build the bucket prefix holding a device's screenshots."""
    return f"{device_id}{PREFIX_DELIMITER}{SCREENSHOTS_FOLDER}{PREFIX_DELIMITER}"


def object_basename(key: str) -> str:
    """Strip the prefix path from an object key."""
    return key.rsplit(PREFIX_DELIMITER, 1)[-1]


def is_ad_key(key: str) -> bool:
    """True if an object key is an ad media file."""
    return key.lower().endswith(AD_SUFFIX)


def is_screenshot_key(key: str) -> bool:
    """True if an object key is a screenshot image."""
    return key.lower().endswith(SCREENSHOT_SUFFIX)
