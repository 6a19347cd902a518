"""Async DynamoDB and S3 facade for play telemetry."""

import asyncio
import logging
from collections.abc import Awaitable
from datetime import datetime
from typing import Any, TypeVar

import aioboto3  # type: ignore[import-untyped]
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError, NoCredentialsError

from .exceptions import InvalidQuery, StoreUnavailable, UpstreamError, UpstreamTimeout
from .models import QueryPage, QueryRequest, SortOperator, StoredObject, parse_timestamp

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TIMEOUT_SECONDS = 10.0
DEFAULT_MAX_ATTEMPTS = 3


class StoreClient:
    """
    Async facade over the play-record table and the media bucket.

    Handles every external call the monitor makes: paged key queries against
    the table and its secondary indexes, inspection scans, prefix and object
    listing, and presigned URLs.

    Each call is bounded by ``timeout_seconds`` and retried by botocore's
    standard retry mode (exponential backoff with jitter) up to
    ``max_attempts`` times for throttling and transient errors. Failures are
    translated into UpstreamError, StoreUnavailable or UpstreamTimeout.
    """

    def __init__(
        self,
        region: str | None = None,
        endpoint_url: str | None = None,
        profile_name: str | None = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ) -> None:
        self.region = region
        self.endpoint_url = endpoint_url
        self.profile_name = profile_name
        self.timeout_seconds = timeout_seconds
        self.max_attempts = max_attempts
        self._session: aioboto3.Session | None = None
        self._dynamodb: Any = None
        self._s3: Any = None

    async def __aenter__(self) -> "StoreClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    def _client_config(self) -> Config:
        return Config(
            retries={"max_attempts": self.max_attempts, "mode": "standard"},
            connect_timeout=self.timeout_seconds,
            read_timeout=self.timeout_seconds,
        )

    def _get_session(self) -> Any:
        if self._session is None:
            self._session = aioboto3.Session(profile_name=self.profile_name)
        return self._session

    async def _get_dynamodb(self) -> Any:
        """Get or create the DynamoDB client."""
        if self._dynamodb is None:
            self._dynamodb = await (
                self._get_session()
                .client(
                    "dynamodb",
                    region_name=self.region,
                    endpoint_url=self.endpoint_url,
                    config=self._client_config(),
                )
                .__aenter__()
            )
        return self._dynamodb

    async def _get_s3(self) -> Any:
        """Get or create the S3 client."""
        if self._s3 is None:
            self._s3 = await (
                self._get_session()
                .client(
                    "s3",
                    region_name=self.region,
                    endpoint_url=self.endpoint_url,
                    config=self._client_config(),
                )
                .__aenter__()
            )
        return self._s3

    async def close(self) -> None:
        """Close the DynamoDB and S3 clients."""
        if self._dynamodb is not None:
            await self._dynamodb.__aexit__(None, None, None)
            self._dynamodb = None
        if self._s3 is not None:
            await self._s3.__aexit__(None, None, None)
            self._s3 = None
        self._session = None

    async def _call(self, operation: str, awaitable: Awaitable[T]) -> T:
        """Await one external call, bounding it and translating its failures."""
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout_seconds)
        except TimeoutError as e:
            logger.warning("%s timed out after %ss", operation, self.timeout_seconds)
            raise UpstreamTimeout(operation, self.timeout_seconds) from e
        except ClientError as e:
            error = e.response.get("Error", {})
            code = error.get("Code")
            message = error.get("Message") or str(e)
            logger.warning("%s failed: %s (%s)", operation, message, code)
            raise UpstreamError(message, error_code=code, operation=operation, cause=e) from e
        except NoCredentialsError as e:
            raise StoreUnavailable(
                str(e), error_code="CredentialsError", operation=operation, cause=e
            ) from e
        except BotoCoreError as e:
            logger.warning("%s unavailable: %s", operation, e)
            raise StoreUnavailable(
                str(e), error_code=type(e).__name__, operation=operation, cause=e
            ) from e

    # -------------------------------------------------------------------------
    # Table operations
    # -------------------------------------------------------------------------

    async def query(self, request: QueryRequest) -> QueryPage:
        """
        Run one page of a key query.

        Args:
            request: Table, optional index, partition match, optional sort
                condition, page size and continuation token

        Returns:
            QueryPage with deserialized items and the next continuation token

        Raises:
            InvalidQuery: If table, partition key or partition value is missing
            UpstreamError: If the store call fails
        """
        if not request.table:
            raise InvalidQuery("Table name is required")
        if not request.partition_key or request.partition_value in (None, ""):
            raise InvalidQuery(
                "Partition key and value are required for a query",
                table_name=request.table,
            )

        client = await self._get_dynamodb()
        args = build_query_args(request)
        response = await self._call("Query", client.query(**args))
        return self._to_page(response)

    async def scan(
        self,
        table: str,
        limit: int | None = None,
        exclusive_start_key: dict[str, Any] | None = None,
        projection: list[str] | None = None,
    ) -> QueryPage:
        """
        Run one page of an unconditioned scan.

        Reads every item of the table; keep it to ad hoc inspection and
        small tables.
        """
        if not table:
            raise InvalidQuery("Table name is required")

        client = await self._get_dynamodb()
        args: dict[str, Any] = {"TableName": table}
        if limit:
            args["Limit"] = limit
        if exclusive_start_key:
            args["ExclusiveStartKey"] = serialize_map(exclusive_start_key)
        if projection:
            names = {f"#p{i}": attr for i, attr in enumerate(projection)}
            args["ProjectionExpression"] = ", ".join(names)
            args["ExpressionAttributeNames"] = names

        response = await self._call("Scan", client.scan(**args))
        return self._to_page(response)

    async def list_tables(self) -> list[str]:
        """List every table name visible to the caller."""
        client = await self._get_dynamodb()
        tables: list[str] = []
        args: dict[str, Any] = {}
        while True:
            response = await self._call("ListTables", client.list_tables(**args))
            tables.extend(response.get("TableNames", []))
            last = response.get("LastEvaluatedTableName")
            if not last:
                return tables
            args["ExclusiveStartTableName"] = last

    def _to_page(self, response: dict[str, Any]) -> QueryPage:
        items = [deserialize_map(item) for item in response.get("Items", [])]
        last_key = response.get("LastEvaluatedKey")
        return QueryPage(
            items=items,
            last_evaluated_key=deserialize_map(last_key) if last_key else None,
            count=response.get("Count", len(items)),
            scanned_count=response.get("ScannedCount", len(items)),
        )

    # -------------------------------------------------------------------------
    # Bucket operations
    # -------------------------------------------------------------------------

    async def list_prefixes(
        self,
        bucket: str,
        prefix: str = "",
        delimiter: str = "/",
    ) -> set[str]:
        """List common prefixes directly under ``prefix``, trailing delimiter removed."""
        client = await self._get_s3()
        prefixes: set[str] = set()
        args: dict[str, Any] = {"Bucket": bucket, "Prefix": prefix, "Delimiter": delimiter}
        while True:
            response = await self._call("ListObjectsV2", client.list_objects_v2(**args))
            for common in response.get("CommonPrefixes", []):
                name = common["Prefix"][len(prefix) :].rstrip(delimiter)
                if name:
                    prefixes.add(name)
            token = response.get("NextContinuationToken")
            if not response.get("IsTruncated") or not token:
                return prefixes
            args["ContinuationToken"] = token

    async def list_objects(self, bucket: str, prefix: str) -> list[StoredObject]:
        """List every object under ``prefix`` in key order."""
        client = await self._get_s3()
        objects: list[StoredObject] = []
        args: dict[str, Any] = {"Bucket": bucket, "Prefix": prefix}
        while True:
            response = await self._call("ListObjectsV2", client.list_objects_v2(**args))
            for obj in response.get("Contents", []):
                modified = obj.get("LastModified")
                objects.append(
                    StoredObject(
                        key=obj["Key"],
                        last_modified=parse_timestamp(modified) if modified else None,
                        size=obj.get("Size", 0),
                    )
                )
            token = response.get("NextContinuationToken")
            if not response.get("IsTruncated") or not token:
                return objects
            args["ContinuationToken"] = token

    async def presigned_get_url(self, bucket: str, key: str, ttl_seconds: int) -> str:
        """Generate a GET URL for one object, valid for ``ttl_seconds``."""
        client = await self._get_s3()
        url = await self._call(
            "GeneratePresignedUrl",
            client.generate_presigned_url(
                "get_object",
                Params={"Bucket": bucket, "Key": key},
                ExpiresIn=ttl_seconds,
            ),
        )
        return str(url)


# ---------------------------------------------------------------------------
# Expression builders
# ---------------------------------------------------------------------------


def build_query_args(request: QueryRequest) -> dict[str, Any]:
    """Translate a QueryRequest into low-level Query keyword arguments."""
    names: dict[str, str] = {"#pk": request.partition_key}
    values: dict[str, Any] = {":pk": serialize_value(request.partition_value)}
    key_condition = "#pk = :pk"

    cond = request.sort_condition
    if cond is not None:
        names["#sk"] = cond.attribute
        values[":sk"] = serialize_value(cond.value)
        if cond.operator is SortOperator.EQ:
            key_condition += " AND #sk = :sk"
        elif cond.operator is SortOperator.GTE:
            key_condition += " AND #sk >= :sk"
        elif cond.operator is SortOperator.LTE:
            key_condition += " AND #sk <= :sk"
        else:
            values[":sk_end"] = serialize_value(cond.upper)
            key_condition += " AND #sk BETWEEN :sk AND :sk_end"

    args: dict[str, Any] = {
        "TableName": request.table,
        "KeyConditionExpression": key_condition,
        "ScanIndexForward": request.scan_forward,
    }

    if request.filters:
        clauses = []
        for i, (attr, value) in enumerate(sorted(request.filters.items())):
            names[f"#f{i}"] = attr
            values[f":f{i}"] = serialize_value(value)
            clauses.append(f"#f{i} = :f{i}")
        args["FilterExpression"] = " AND ".join(clauses)

    args["ExpressionAttributeNames"] = names
    args["ExpressionAttributeValues"] = values
    if request.index_name:
        args["IndexName"] = request.index_name
    if request.limit:
        args["Limit"] = request.limit
    if request.exclusive_start_key:
        args["ExclusiveStartKey"] = serialize_map(request.exclusive_start_key)
    return args


# ---------------------------------------------------------------------------
# Serialization helpers
# ---------------------------------------------------------------------------


def serialize_map(data: dict[str, Any]) -> dict[str, Any]:
    """Serialize a Python dict to DynamoDB attribute map format."""
    return {key: serialize_value(value) for key, value in data.items()}


def serialize_value(value: Any) -> dict[str, Any]:
    """Serialize a single Python value to DynamoDB attribute format."""
    if value is None:
        return {"NULL": True}
    elif isinstance(value, bool):
        return {"BOOL": value}
    elif isinstance(value, str):
        return {"S": value}
    elif isinstance(value, bytes | bytearray):
        return {"B": bytes(value)}
    elif isinstance(value, int | float):
        return {"N": str(value)}
    elif isinstance(value, datetime):
        return {"S": value.isoformat()}
    elif isinstance(value, list):
        return {"L": [serialize_value(v) for v in value]}
    elif isinstance(value, dict):
        return {"M": serialize_map(value)}
    return {"S": str(value)}


def deserialize_map(data: dict[str, Any]) -> dict[str, Any]:
    """Deserialize a DynamoDB attribute map to a Python dict."""
    return {key: deserialize_value(value) for key, value in data.items()}


def deserialize_value(value: dict[str, Any]) -> Any:
    """Deserialize a single DynamoDB attribute value."""
    if "S" in value:
        return value["S"]
    elif "N" in value:
        return _parse_number(value["N"])
    elif "BOOL" in value:
        return value["BOOL"]
    elif "NULL" in value:
        return None
    elif "M" in value:
        return deserialize_map(value["M"])
    elif "L" in value:
        return [deserialize_value(v) for v in value["L"]]
    elif "SS" in value:
        return set(value["SS"])
    elif "NS" in value:
        return {_parse_number(n) for n in value["NS"]}
    elif "B" in value:
        return bytes(value["B"])
    elif "BS" in value:
        return {bytes(b) for b in value["BS"]}
    return None


def _parse_number(num_str: str) -> int | float:
    if "." in num_str or "e" in num_str.lower():
        return float(num_str)
    return int(num_str)
