"""Async client for the DataMerge Company API.

One :class:`DataMergeClient` wraps one (credential, base URL) pair and is
never mutated after construction.  Every public method returns an
:class:`ApiResult`; HTTP and network failures are reported in the
envelope instead of raised.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional, TypeVar
from urllib.parse import quote

import httpx

from datamerge_mcp.constants import (
    DEFAULT_BASE_URL,
    DEFAULT_HEALTH_TIMEOUT,
    DEFAULT_REQUEST_TIMEOUT,
    HEALTH_PROBE_PATH,
)
from datamerge_mcp.display.logging_config import secret_redaction_filter
from datamerge_mcp.errors import UpstreamError
from datamerge_mcp.upstream.envelope import ApiResult, error_from_response, extract_error_message
from datamerge_mcp.upstream.models import (
    CompanyEnrichRequest,
    CompanyGetParams,
    CompanyHierarchyParams,
    ContactEnrichRequest,
    ContactSearchRequest,
    ListCreateRequest,
    ListItemsParams,
    LookalikeRequest,
    ObjectType,
)
from datamerge_mcp.upstream.records import (
    CompanyHierarchy,
    CompanyRecord,
    ContactRecord,
    CreditsBalance,
    Job,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Upstream paths.  Job status paths take the quoted job id.
ENRICH_PATH = "/v1/company/enrich"
ENRICH_STATUS_PATH = "/v1/company/enrich/{job_id}/status"
COMPANY_GET_PATH = "/v1/company/get"
HIERARCHY_PATH = "/v1/company/hierarchy"
LOOKALIKE_PATH = "/v1/company/lookalike"
LOOKALIKE_STATUS_PATH = "/v1/company/lookalike/{job_id}/status"
CONTACT_SEARCH_PATH = "/v1/contact/search"
CONTACT_SEARCH_STATUS_PATH = "/v1/contact/search/{job_id}/status"
CONTACT_ENRICH_PATH = "/v1/contact/enrich"
CONTACT_ENRICH_STATUS_PATH = "/v1/contact/enrich/{job_id}/status"
CONTACT_GET_PATH = "/v1/contact/get"
LISTS_PATH = "/v1/lists"
LIST_PATH = "/v1/lists/{object_type}/{list_slug}"
LIST_ITEM_PATH = "/v1/lists/{object_type}/{list_slug}/{item_id}"
CREDITS_PATH = "/v1/credits/balance"


def _q(value: str) -> str:
    return quote(str(value), safe="")


class DataMergeClient:
    """Async HTTP client for the DataMerge API.

    Parameters
    ----------
    api_key:
        DataMerge API key, sent as ``Authorization: Token <key>``.
    base_url:
        Root URL of the API (default ``https://api.datamerge.ai``).
    timeout:
        Per-request timeout in seconds.
    health_timeout:
        Timeout for :meth:`health_check`.
    transport:
        Optional httpx transport (tests pass an ``httpx.MockTransport``).
    """

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        health_timeout: float = DEFAULT_HEALTH_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        if not api_key:
            raise ValueError("api_key is required")
        self._api_key = api_key
        self._base_url = (base_url or DEFAULT_BASE_URL).rstrip("/")
        self._timeout = timeout
        self._health_timeout = health_timeout
        self._transport = transport
        secret_redaction_filter.register(api_key)

    def __repr__(self) -> str:
        return f"DataMergeClient(base_url={self._base_url!r}, api_key=***)"

    @property
    def base_url(self) -> str:
        return self._base_url

    def uses_credential(self, credential: str) -> bool:
        """True if this client authenticates with *credential*."""
        return credential == self._api_key

    # ── HTTP plumbing ───────────────────────────────────────────────

    def _http(self, timeout: Optional[float] = None) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._base_url,
            headers={
                "Authorization": f"Token {self._api_key}",
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            timeout=timeout if timeout is not None else self._timeout,
            transport=self._transport,
        )

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Perform one call and return the decoded JSON body.

        Raises :class:`UpstreamError` for transport failures, non-2xx
        responses and 2xx bodies carrying an ``error`` key.
        """
        try:
            async with self._http() as http:
                resp = await http.request(method, path, params=params or None, json=json)
        except httpx.HTTPError as exc:
            logger.warning("DataMerge %s %s failed: %s", method, path, exc)
            raise UpstreamError(str(exc) or type(exc).__name__, orig_exc=exc) from exc

        if resp.is_error:
            message = error_from_response(resp)
            logger.warning(
                "DataMerge %s %s returned HTTP %d: %s", method, path, resp.status_code, message
            )
            raise UpstreamError(message, status_code=resp.status_code)

        if not resp.content:
            return {}
        try:
            payload = resp.json()
        except ValueError as exc:
            raise UpstreamError(
                f"Unexpected non-JSON response: {resp.text[:200]}", status_code=resp.status_code
            ) from exc

        if isinstance(payload, dict) and "error" in payload and payload["error"]:
            raise UpstreamError(extract_error_message(payload) or "Unknown error")
        return payload

    async def _call(
        self,
        method: str,
        path: str,
        parse: Callable[[Any], T],
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> ApiResult[T]:
        try:
            payload = await self._request(method, path, params=params, json=json)
        except UpstreamError as exc:
            return ApiResult.failure(exc.message, status_code=exc.status_code)
        return ApiResult.success(parse(payload))

    # ── Company ─────────────────────────────────────────────────────

    async def start_company_enrichment(self, request: CompanyEnrichRequest) -> ApiResult[Job]:
        """``POST /v1/company/enrich``; returns the queued job."""
        return await self._call(
            "POST",
            ENRICH_PATH,
            lambda data: Job.from_dict(data, default_status="queued"),
            json=request.to_body(),
        )

    async def get_company_enrichment_result(self, job_id: str) -> ApiResult[Job]:
        """``GET /v1/company/enrich/{job_id}/status``."""
        return await self._call(
            "GET",
            ENRICH_STATUS_PATH.format(job_id=_q(job_id)),
            lambda data: Job.from_dict(data, fallback_id=job_id),
        )

    async def get_company(self, params: CompanyGetParams) -> ApiResult[CompanyRecord]:
        """``GET /v1/company/get`` by ``datamerge_id`` or ``record_id``."""

        def parse(data: Any) -> CompanyRecord:
            record = data.get("record") if isinstance(data, dict) else None
            return CompanyRecord.from_dict(record if record is not None else data)

        return await self._call("GET", COMPANY_GET_PATH, parse, params=params.to_params())

    async def get_company_hierarchy(
        self, params: CompanyHierarchyParams
    ) -> ApiResult[CompanyHierarchy]:
        """``GET /v1/company/hierarchy``; tolerant of several response shapes."""

        def parse(data: Any) -> CompanyHierarchy:
            if isinstance(data, dict):
                data = data.get("result") or data.get("data") or data
            return CompanyHierarchy.from_dict(data)

        return await self._call("GET", HIERARCHY_PATH, parse, params=params.to_params())

    async def start_lookalike(self, request: LookalikeRequest) -> ApiResult[Job]:
        return await self._call(
            "POST",
            LOOKALIKE_PATH,
            lambda data: Job.from_dict(data, default_status="queued"),
            json=request.to_body(),
        )

    async def get_lookalike_status(self, job_id: str) -> ApiResult[Job]:
        return await self._call(
            "GET",
            LOOKALIKE_STATUS_PATH.format(job_id=_q(job_id)),
            lambda data: Job.from_dict(data, fallback_id=job_id),
        )

    # ── Contacts ────────────────────────────────────────────────────

    async def contact_search(self, request: ContactSearchRequest) -> ApiResult[Job]:
        return await self._call(
            "POST",
            CONTACT_SEARCH_PATH,
            lambda data: Job.from_dict(data, default_status="queued", record_type=ContactRecord),
            json=request.to_body(),
        )

    async def get_contact_search_status(self, job_id: str) -> ApiResult[Job]:
        return await self._call(
            "GET",
            CONTACT_SEARCH_STATUS_PATH.format(job_id=_q(job_id)),
            lambda data: Job.from_dict(data, fallback_id=job_id, record_type=ContactRecord),
        )

    async def contact_enrich(self, request: ContactEnrichRequest) -> ApiResult[Job]:
        return await self._call(
            "POST",
            CONTACT_ENRICH_PATH,
            lambda data: Job.from_dict(data, default_status="queued", record_type=ContactRecord),
            json=request.to_body(),
        )

    async def get_contact_enrich_status(self, job_id: str) -> ApiResult[Job]:
        return await self._call(
            "GET",
            CONTACT_ENRICH_STATUS_PATH.format(job_id=_q(job_id)),
            lambda data: Job.from_dict(data, fallback_id=job_id, record_type=ContactRecord),
        )

    async def get_contact(self, record_id: str) -> ApiResult[ContactRecord]:
        """``GET /v1/contact/get``; free of charge."""

        def parse(data: Any) -> ContactRecord:
            record = None
            if isinstance(data, dict):
                record = data.get("record") or data.get("contact")
            return ContactRecord.from_dict(record if record is not None else data)

        return await self._call(
            "GET", CONTACT_GET_PATH, parse, params={"record_id": record_id}
        )

    # ── Lists ───────────────────────────────────────────────────────

    async def list_lists(self, object_type: Optional[ObjectType] = None) -> ApiResult[List[Any]]:
        def parse(data: Any) -> List[Any]:
            if isinstance(data, dict) and isinstance(data.get("lists"), list):
                return data["lists"]
            return data if isinstance(data, list) else []

        params = {"object_type": object_type} if object_type else None
        return await self._call("GET", LISTS_PATH, parse, params=params)

    async def create_list(self, request: ListCreateRequest) -> ApiResult[Dict[str, Any]]:
        def parse(data: Any) -> Dict[str, Any]:
            if isinstance(data, dict) and isinstance(data.get("list"), dict):
                return data["list"]
            return data if isinstance(data, dict) else {"list": data}

        return await self._call("POST", LISTS_PATH, parse, json=request.model_dump())

    async def get_list_items(
        self,
        object_type: ObjectType,
        list_slug: str,
        params: Optional[ListItemsParams] = None,
    ) -> ApiResult[List[Any]]:
        def parse(data: Any) -> List[Any]:
            if isinstance(data, list):
                return data
            if isinstance(data, dict):
                for key in ("items", "results", "data"):
                    if isinstance(data.get(key), list):
                        return data[key]
            return []

        path = LIST_PATH.format(object_type=_q(object_type), list_slug=_q(list_slug))
        return await self._call(
            "GET", path, parse, params=params.to_params() if params else None
        )

    async def remove_list_item(
        self, object_type: ObjectType, list_slug: str, item_id: str
    ) -> ApiResult[bool]:
        path = LIST_ITEM_PATH.format(
            object_type=_q(object_type), list_slug=_q(list_slug), item_id=_q(item_id)
        )
        return await self._call("DELETE", path, lambda _: True)

    async def delete_list(self, object_type: ObjectType, list_slug: str) -> ApiResult[bool]:
        """System lists cannot be deleted; upstream rejects them."""
        path = LIST_PATH.format(object_type=_q(object_type), list_slug=_q(list_slug))
        return await self._call("DELETE", path, lambda _: True)

    # ── Account ─────────────────────────────────────────────────────

    async def get_credits_balance(self) -> ApiResult[CreditsBalance]:
        return await self._call("GET", CREDITS_PATH, CreditsBalance.from_dict)

    async def health_check(self) -> bool:
        """Probe ``GET /auth/info``; any failure is reported as ``False``."""
        try:
            async with self._http(timeout=self._health_timeout) as http:
                resp = await http.get(HEALTH_PROBE_PATH)
        except httpx.HTTPError as exc:
            logger.info("DataMerge health probe failed: %s", exc)
            return False
        if resp.is_error:
            logger.info("DataMerge health probe returned HTTP %d", resp.status_code)
            return False
        return True
