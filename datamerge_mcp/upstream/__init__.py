"""DataMerge Company API client and response normalization."""

from datamerge_mcp.upstream.client import DataMergeClient
from datamerge_mcp.upstream.envelope import ApiResult
from datamerge_mcp.upstream.records import (
    CompanyHierarchy,
    CompanyRecord,
    ContactRecord,
    CreditsBalance,
    Job,
)

__all__ = [
    "ApiResult",
    "CompanyHierarchy",
    "CompanyRecord",
    "ContactRecord",
    "CreditsBalance",
    "DataMergeClient",
    "Job",
]
