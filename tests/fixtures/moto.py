"""Moto fixtures for store client tests with mocked AWS."""

import asyncio
from collections.abc import Awaitable, Iterator
from datetime import timedelta
from typing import Any
from unittest.mock import patch

import boto3
import pytest
from moto import mock_aws

from adplay_monitor import schema
from adplay_monitor.models import format_timestamp

from tests.fixtures.stores import NOW

REGION = "us-east-1"
PLAYS_TABLE = "test-ad-plays"
MEDIA_BUCKET = "test-device-media"


@pytest.fixture
def aws_credentials(monkeypatch):
    """Mock AWS credentials for moto."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", REGION)
    # Unset AWS_ENDPOINT_URL to ensure moto intercepts requests
    monkeypatch.delenv("AWS_ENDPOINT_URL", raising=False)


@pytest.fixture
def mock_store(aws_credentials) -> Iterator[None]:
    """Mock DynamoDB and S3 for tests."""
    with mock_aws(), _patch_aiobotocore_response():
        yield


def _patch_aiobotocore_response():
    """
    Patch aiobotocore to work with moto's sync responses.

    Moto returns botocore.awsrequest.AWSResponse which has sync content,
    but aiobotocore expects async content. This patch wraps the response
    handling to convert sync content to async.

    See: https://github.com/aio-libs/aiobotocore/discussions/1300
    """
    from aiobotocore import endpoint

    original_convert = endpoint.convert_to_response_dict

    async def patched_convert(http_response, operation_model):
        # If content is not awaitable (moto's sync response), wrap it
        if hasattr(http_response, "_content") and not isinstance(http_response._content, Awaitable):
            fut: asyncio.Future[bytes] = asyncio.Future()
            fut.set_result(http_response.content)
            http_response._content = fut
        return await original_convert(http_response, operation_model)

    return patch.object(endpoint, "convert_to_response_dict", patched_convert)


def create_plays_table(items: list[dict[str, Any]]) -> None:
    """Create the plays table with both secondary indexes and load ``items``."""
    client = boto3.client("dynamodb", region_name=REGION)
    client.create_table(
        TableName=PLAYS_TABLE,
        KeySchema=[{"AttributeName": schema.ATTR_PLAY_ID, "KeyType": "HASH"}],
        AttributeDefinitions=[
            {"AttributeName": schema.ATTR_PLAY_ID, "AttributeType": "S"},
            {"AttributeName": schema.ATTR_DEVICE_ID, "AttributeType": "S"},
            {"AttributeName": schema.ATTR_AD_FILENAME, "AttributeType": "S"},
            {"AttributeName": schema.ATTR_TIMESTAMP, "AttributeType": "S"},
        ],
        GlobalSecondaryIndexes=[
            {
                "IndexName": schema.DEVICE_INDEX_NAME,
                "KeySchema": [
                    {"AttributeName": schema.ATTR_DEVICE_ID, "KeyType": "HASH"},
                    {"AttributeName": schema.ATTR_TIMESTAMP, "KeyType": "RANGE"},
                ],
                "Projection": {"ProjectionType": "ALL"},
            },
            {
                "IndexName": schema.AD_INDEX_NAME,
                "KeySchema": [
                    {"AttributeName": schema.ATTR_AD_FILENAME, "KeyType": "HASH"},
                    {"AttributeName": schema.ATTR_TIMESTAMP, "KeyType": "RANGE"},
                ],
                "Projection": {"ProjectionType": "ALL"},
            },
        ],
        BillingMode="PAY_PER_REQUEST",
    )
    table = boto3.resource("dynamodb", region_name=REGION).Table(PLAYS_TABLE)
    with table.batch_writer() as batch:
        for item in items:
            batch.put_item(Item=item)


def create_media_bucket(keys: list[str]) -> None:
    """Create the media bucket holding an empty object at each key."""
    client = boto3.client("s3", region_name=REGION)
    client.create_bucket(Bucket=MEDIA_BUCKET)
    for key in keys:
        client.put_object(Bucket=MEDIA_BUCKET, Key=key, Body=b"")


def seeded_plays(
    device_id: str, count: int, ad_filename: str = "promo.mp4"
) -> list[dict[str, Any]]:
    """``count`` plays of one device, one minute apart, ending at NOW."""
    return [
        {
            schema.ATTR_PLAY_ID: f"{device_id}-{i:03d}",
            schema.ATTR_DEVICE_ID: device_id,
            schema.ATTR_AD_FILENAME: ad_filename,
            schema.ATTR_TIMESTAMP: format_timestamp(NOW - timedelta(minutes=count - 1 - i)),
            schema.ATTR_PLAY_DURATION: 15,
        }
        for i in range(count)
    ]
