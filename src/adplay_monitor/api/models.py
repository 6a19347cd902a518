"""Pydantic models for request bodies."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class QueryStatsRequest(BaseModel):
    """Body of the generic query/scan passthrough."""

    model_config = ConfigDict(populate_by_name=True)

    table_name: str | None = Field(default=None, alias="tableName", description="Table to read")
    limit: int = Field(default=100, ge=1, description="Page size")
    partition_key: str | None = Field(default=None, alias="partitionKey")
    partition_value: Any = Field(default=None, alias="partitionValue")
    sort_key: str | None = Field(default=None, alias="sortKey")
    sort_value: Any = Field(default=None, alias="sortValue")
    sort_value_start: Any = Field(default=None, alias="sortValueStart")
    sort_value_end: Any = Field(default=None, alias="sortValueEnd")
    index_name: str | None = Field(default=None, alias="indexName")
