"""Argument models for tools that do not map 1:1 onto an upstream request."""

from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from datamerge_mcp.upstream.models import CompanyEnrichRequest, ListItemsParams, ObjectType


class NoArgs(BaseModel):
    pass


class ConfigureArgs(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    api_key: Optional[str] = Field(
        default=None,
        alias="apiKey",
        description="DataMerge API key (Authorization: Token <apiKey>).",
    )
    base_url: Optional[str] = Field(
        default=None,
        alias="baseUrl",
        description="Optional override for the DataMerge API base URL (default: https://api.datamerge.ai).",
    )


class EnrichAndWaitArgs(CompanyEnrichRequest):
    poll_interval_seconds: Optional[float] = Field(
        default=None, description="Seconds between status checks (default from server config, 5)."
    )
    timeout_seconds: Optional[float] = Field(
        default=None, description="Seconds before giving up (default from server config, 60)."
    )

    def to_body(self) -> Dict[str, Any]:
        body = super().to_body()
        body.pop("poll_interval_seconds", None)
        body.pop("timeout_seconds", None)
        return body


class JobIdArgs(BaseModel):
    job_id: str = Field(..., min_length=1, description="Job ID returned by the start tool.")


class RecordIdArgs(BaseModel):
    record_id: str = Field(..., min_length=1, description="Record UUID.")


class ListListsArgs(BaseModel):
    object_type: Optional[ObjectType] = Field(default=None, description="company or contact.")


class ListRefArgs(BaseModel):
    object_type: ObjectType
    list_slug: str = Field(..., min_length=1)


class ListItemsArgs(ListItemsParams):
    object_type: ObjectType
    list_slug: str = Field(..., min_length=1)

    def params(self) -> ListItemsParams:
        return ListItemsParams.model_validate(
            self.model_dump(include=set(ListItemsParams.model_fields))
        )


class RemoveListItemArgs(ListRefArgs):
    item_id: str = Field(..., min_length=1)
