"""The DataMerge tool catalog: one handler per tool."""

from __future__ import annotations

import json
import logging
from typing import Any, List

from mcp import types as mcp_types

from datamerge_mcp.jobs.poller import PollOutcome, effective_seconds, start_and_await
from datamerge_mcp.server.tools.models import (
    ConfigureArgs,
    EnrichAndWaitArgs,
    JobIdArgs,
    ListItemsArgs,
    ListListsArgs,
    ListRefArgs,
    NoArgs,
    RecordIdArgs,
    RemoveListItemArgs,
)
from datamerge_mcp.server.tools.registry import ToolContext, ToolSpec, text_result
from datamerge_mcp.upstream.envelope import ApiResult
from datamerge_mcp.upstream.models import (
    CompanyEnrichRequest,
    CompanyGetParams,
    CompanyHierarchyParams,
    ContactEnrichRequest,
    ContactSearchRequest,
    ListCreateRequest,
    LookalikeRequest,
)
from datamerge_mcp.upstream.records import Job

logger = logging.getLogger(__name__)

CallToolResult = mcp_types.CallToolResult


def _dumps(payload: Any) -> str:
    return json.dumps(payload, indent=2, default=str)


def _json_result(payload: Any) -> CallToolResult:
    return text_result(_dumps(payload))


def _failed(prefix: str, result: ApiResult[Any]) -> CallToolResult:
    return text_result(f"{prefix}: {result.error or 'Unknown error from DataMerge'}", is_error=True)


def _started(label: str, result: ApiResult[Job], failure_prefix: str) -> CallToolResult:
    if not result.ok or result.data is None:
        return _failed(failure_prefix, result)
    job = result.data
    text = f"Started {label} job.\n\nJob ID: {job.id}\nStatus: {job.status}"
    if job.extra.get("message"):
        text += f"\n{job.extra['message']}"
    return text_result(text)


def _job_status(result: ApiResult[Job], failure_prefix: str) -> CallToolResult:
    if not result.ok or result.data is None:
        return _failed(failure_prefix, result)
    return _json_result(result.data.to_dict())


# ── Configuration ────────────────────────────────────────────────────────


async def configure_datamerge(ctx: ToolContext, args: ConfigureArgs) -> CallToolResult:
    ctx.store.configure(ctx.session_id, args.api_key, args.base_url)
    return text_result("DataMerge API client configured successfully.")


async def health_check(ctx: ToolContext, args: NoArgs) -> CallToolResult:
    if await ctx.client().health_check():
        return text_result("DataMerge API client is healthy and can connect to the API.")
    return text_result(
        "DataMerge API client cannot connect to the API. Please check your configuration."
    )


# ── Company enrichment ───────────────────────────────────────────────────


async def start_company_enrichment(
    ctx: ToolContext, args: CompanyEnrichRequest
) -> CallToolResult:
    result = await ctx.client().start_company_enrichment(args)
    return _started("DataMerge enrichment", result, "DataMerge enrichment request failed")


async def start_company_enrichment_and_wait(
    ctx: ToolContext, args: EnrichAndWaitArgs
) -> CallToolResult:
    client = ctx.client()
    timeout = effective_seconds(args.timeout_seconds, ctx.polling.timeout_seconds)

    polled = await start_and_await(
        lambda: client.start_company_enrichment(args),
        client.get_company_enrichment_result,
        poll_interval=args.poll_interval_seconds,
        timeout=timeout,
        default_interval=ctx.polling.interval_seconds,
        default_timeout=ctx.polling.timeout_seconds,
    )
    if not polled.ok or polled.data is None:
        return _failed("DataMerge enrichment request failed", polled)

    outcome = polled.data
    if outcome.outcome is PollOutcome.SUCCEEDED:
        return _json_result(outcome.job.to_dict())
    if outcome.outcome is PollOutcome.FAILED:
        return text_result(
            f"Enrichment job failed.\n\nJob ID: {outcome.job_id}\nStatus: {outcome.job.status}",
            is_error=True,
        )
    return text_result(
        f"Timed out waiting for enrichment job to complete after {round(timeout)} seconds."
        f"\n\nJob ID: {outcome.job_id}\n"
        "You can continue polling using get_company_enrichment_result."
    )


async def get_company_enrichment_result(ctx: ToolContext, args: JobIdArgs) -> CallToolResult:
    result = await ctx.client().get_company_enrichment_result(args.job_id)
    return _job_status(result, "Failed to fetch enrichment status")


# ── Company lookup ───────────────────────────────────────────────────────


async def get_company(ctx: ToolContext, args: CompanyGetParams) -> CallToolResult:
    result = await ctx.client().get_company(args)
    if not result.ok or result.data is None:
        return _failed("Failed to fetch company", result)
    return _json_result(result.data.to_dict())


async def get_company_hierarchy(ctx: ToolContext, args: CompanyHierarchyParams) -> CallToolResult:
    result = await ctx.client().get_company_hierarchy(args)
    if not result.ok or result.data is None:
        return _failed("Failed to fetch company hierarchy", result)
    return _json_result(result.data.to_dict())


# ── Lookalike ────────────────────────────────────────────────────────────


async def start_lookalike(ctx: ToolContext, args: LookalikeRequest) -> CallToolResult:
    result = await ctx.client().start_lookalike(args)
    return _started("lookalike", result, "Lookalike request failed")


async def get_lookalike_status(ctx: ToolContext, args: JobIdArgs) -> CallToolResult:
    result = await ctx.client().get_lookalike_status(args.job_id)
    return _job_status(result, "Failed to get lookalike status")


# ── Contacts ─────────────────────────────────────────────────────────────


async def contact_search(ctx: ToolContext, args: ContactSearchRequest) -> CallToolResult:
    result = await ctx.client().contact_search(args)
    return _started("contact search", result, "Contact search failed")


async def get_contact_search_status(ctx: ToolContext, args: JobIdArgs) -> CallToolResult:
    result = await ctx.client().get_contact_search_status(args.job_id)
    return _job_status(result, "Failed to get contact search status")


async def contact_enrich(ctx: ToolContext, args: ContactEnrichRequest) -> CallToolResult:
    result = await ctx.client().contact_enrich(args)
    return _started("contact enrichment", result, "Contact enrich failed")


async def get_contact_enrich_status(ctx: ToolContext, args: JobIdArgs) -> CallToolResult:
    result = await ctx.client().get_contact_enrich_status(args.job_id)
    return _job_status(result, "Failed to get contact enrich status")


async def get_contact(ctx: ToolContext, args: RecordIdArgs) -> CallToolResult:
    result = await ctx.client().get_contact(args.record_id)
    if not result.ok or result.data is None:
        return _failed("Failed to get contact", result)
    return _json_result(result.data.to_dict())


# ── Lists ────────────────────────────────────────────────────────────────


async def list_lists(ctx: ToolContext, args: ListListsArgs) -> CallToolResult:
    result = await ctx.client().list_lists(args.object_type)
    if not result.ok:
        return _failed("Failed to list lists", result)
    return _json_result(result.data or [])


async def create_list(ctx: ToolContext, args: ListCreateRequest) -> CallToolResult:
    result = await ctx.client().create_list(args)
    if not result.ok:
        return _failed("Failed to create list", result)
    return _json_result(result.data)


async def get_list_items(ctx: ToolContext, args: ListItemsArgs) -> CallToolResult:
    result = await ctx.client().get_list_items(args.object_type, args.list_slug, args.params())
    if not result.ok:
        return _failed("Failed to get list items", result)
    return _json_result(result.data or [])


async def remove_list_item(ctx: ToolContext, args: RemoveListItemArgs) -> CallToolResult:
    result = await ctx.client().remove_list_item(args.object_type, args.list_slug, args.item_id)
    if not result.ok:
        return _failed("Failed to remove item", result)
    return text_result("Item removed from list.")


async def delete_list(ctx: ToolContext, args: ListRefArgs) -> CallToolResult:
    result = await ctx.client().delete_list(args.object_type, args.list_slug)
    if not result.ok:
        return _failed("Failed to delete list", result)
    return text_result("List deleted.")


# ── Account ──────────────────────────────────────────────────────────────


async def get_credits_balance(ctx: ToolContext, args: NoArgs) -> CallToolResult:
    result = await ctx.client().get_credits_balance()
    if not result.ok or result.data is None:
        return _failed("Failed to get credits balance", result)
    balance = result.data
    text = f"Credits balance: {balance.credits_balance}"
    if balance.balances is not None:
        text += "\n" + _dumps(balance.balances)
    return text_result(text)


TOOLS: List[ToolSpec] = [
    ToolSpec(
        "configure_datamerge",
        "Configure the DataMerge API client with authentication (API key). "
        "If not called, DATAMERGE_API_KEY env var will be used if present.",
        ConfigureArgs,
        configure_datamerge,
    ),
    ToolSpec(
        "start_company_enrichment",
        "POST /v1/company/enrich. Enrich one or more companies by domain. Returns a job_id "
        "(async). Single: domain. Batch: domains, country_code, global_ultimate, list, "
        "skip_if_exists.",
        CompanyEnrichRequest,
        start_company_enrichment,
    ),
    ToolSpec(
        "start_company_enrichment_and_wait",
        "POST /v1/company/enrich then poll GET /v1/company/enrich/{job_id}/status until status "
        'is "completed" or "failed" or timeout. Same params as start_company_enrichment plus '
        "poll_interval_seconds and timeout_seconds.",
        EnrichAndWaitArgs,
        start_company_enrichment_and_wait,
    ),
    ToolSpec(
        "get_company_enrichment_result",
        'GET /v1/company/enrich/{job_id}/status. Poll until status is "completed" or "failed". '
        "Response includes record_ids. Status values: queued, processing, completed, failed.",
        JobIdArgs,
        get_company_enrichment_result,
    ),
    ToolSpec(
        "get_company",
        "Get a single company record. GET /v1/company/get?datamerge_id={id} or "
        "?record_id={uuid}. Provide either datamerge_id (charges 1 credit) or record_id (free). "
        "Not both. Optional: add_to_list, a list slug to add the company to (only with "
        "datamerge_id).",
        CompanyGetParams,
        get_company,
    ),
    ToolSpec(
        "get_company_hierarchy",
        "Get all entities in the same global ultimate hierarchy. "
        "GET /v1/company/hierarchy?datamerge_id={id}.",
        CompanyHierarchyParams,
        get_company_hierarchy,
    ),
    ToolSpec(
        "start_lookalike",
        "POST /v1/company/lookalike. Find similar companies using seed domains. Returns a job_id "
        "(async, 202). Poll get_lookalike_status until completed or failed.",
        LookalikeRequest,
        start_lookalike,
    ),
    ToolSpec(
        "get_lookalike_status",
        'GET /v1/company/lookalike/{job_id}/status. Poll until status is "completed" or '
        '"failed". Response includes record_ids.',
        JobIdArgs,
        get_lookalike_status,
    ),
    ToolSpec(
        "contact_search",
        "POST /v1/contact/search. Search for contacts at specified companies. Returns a job_id "
        "(async, 202). enrich_fields required (at least one of contact.emails or "
        "contact.phones). Use company_list (slug) instead of domains to search a saved list.",
        ContactSearchRequest,
        contact_search,
    ),
    ToolSpec(
        "get_contact_search_status",
        'GET /v1/contact/search/{job_id}/status. Poll until status is "completed" or "failed". '
        "Response includes record_ids.",
        JobIdArgs,
        get_contact_search_status,
    ),
    ToolSpec(
        "contact_enrich",
        "POST /v1/contact/enrich. Enrich specific contacts by LinkedIn URL or name+domain. "
        "Returns a job_id (async, 202).",
        ContactEnrichRequest,
        contact_enrich,
    ),
    ToolSpec(
        "get_contact_enrich_status",
        'GET /v1/contact/enrich/{job_id}/status. Poll until status is "completed" or "failed". '
        "Response includes record_ids.",
        JobIdArgs,
        get_contact_enrich_status,
    ),
    ToolSpec(
        "get_contact",
        "GET /v1/contact/get?record_id={uuid}. Retrieve a specific contact by record UUID. "
        "Never charges credits.",
        RecordIdArgs,
        get_contact,
    ),
    ToolSpec(
        "list_lists",
        "GET /v1/lists. Optional: object_type=company or object_type=contact.",
        ListListsArgs,
        list_lists,
    ),
    ToolSpec(
        "create_list",
        "POST /v1/lists. Body: name, object_type (company or contact).",
        ListCreateRequest,
        create_list,
    ),
    ToolSpec(
        "get_list_items",
        "GET /v1/lists/{object_type}/{list_slug}. Optional: page, page_size (max 100), "
        "sort_by, sort_order (asc or desc).",
        ListItemsArgs,
        get_list_items,
    ),
    ToolSpec(
        "remove_list_item",
        "DELETE /v1/lists/{object_type}/{list_slug}/{item_id}.",
        RemoveListItemArgs,
        remove_list_item,
    ),
    ToolSpec(
        "delete_list",
        "DELETE /v1/lists/{object_type}/{list_slug}. System lists cannot be deleted.",
        ListRefArgs,
        delete_list,
    ),
    ToolSpec(
        "get_credits_balance",
        "GET /v1/credits/balance. Returns credits_balance and balances (one_off, recurring, "
        "rollover, total).",
        NoArgs,
        get_credits_balance,
    ),
    ToolSpec(
        "health_check",
        "Check if the DataMerge API client is configured and can connect. Uses /auth/info.",
        NoArgs,
        health_check,
    ),
]
