"""Pydantic request models for the DataMerge Company API.

These models validate tool arguments before any upstream call is made
and render the outbound request body / query parameters.  Models that
the API documents as open bags keep unknown keys (``extra="allow"``).
"""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

ObjectType = Literal["company", "contact"]


def _validate_http_url(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    v = v.strip()
    if not v:
        return None
    if not v.startswith(("http://", "https://")):
        raise ValueError(f"URL '{v}' must start with http:// or https://")
    return v


# ── Company enrichment ───────────────────────────────────────────────────


class CompanyEnrichRequest(BaseModel):
    """Body for ``POST /v1/company/enrich``.

    Single enrichment uses ``domain`` or ``company_name``; batch
    enrichment uses ``domains``.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    domain: Optional[str] = Field(default=None, description="Company website domain (e.g. example.com).")
    domains: Optional[List[str]] = Field(
        default=None, description="Batch: multiple domains to enrich in one job."
    )
    company_name: Optional[str] = Field(
        default=None, description="Company name (used when domain is not available)."
    )
    country_code: Optional[Union[str, List[str]]] = Field(
        default=None, description="Optional ISO 2-letter country code(s) to improve matching."
    )
    strict_match: Optional[bool] = Field(
        default=None, description="When true, require a strict match for enrichment."
    )
    global_ultimate: Optional[bool] = Field(
        default=None, description="When true, always return the global ultimate parent."
    )
    webhook_url: Optional[str] = Field(
        default=None, description="Optional webhook URL to receive job completion notifications."
    )
    list_slug: Optional[str] = Field(
        default=None, alias="list", description="List slug to add enriched companies to."
    )
    skip_if_exists: Optional[bool] = Field(
        default=None, description="When true, skip domains that already exist in the list."
    )

    @field_validator("webhook_url")
    @classmethod
    def _check_webhook_url(cls, v: Optional[str]) -> Optional[str]:
        return _validate_http_url(v)

    @model_validator(mode="after")
    def _require_target(self) -> "CompanyEnrichRequest":
        if not (self.domain or self.domains or self.company_name):
            raise ValueError("Either domain, domains (array), or company_name must be provided")
        return self

    def to_body(self) -> Dict[str, Any]:
        """Render the outbound JSON body.

        Empty strings are dropped and ``country_code`` is always sent as
        a non-empty list.
        """
        body = self.model_dump(by_alias=True, exclude_none=True)
        for key in ("domain", "company_name", "webhook_url"):
            if isinstance(body.get(key), str) and not body[key].strip():
                del body[key]

        codes = body.pop("country_code", None)
        if isinstance(codes, str):
            codes = [codes]
        if codes:
            codes = [c for c in codes if isinstance(c, str) and c.strip()]
        if codes:
            body["country_code"] = codes
        return body


# ── Company lookup ───────────────────────────────────────────────────────


class CompanyGetParams(BaseModel):
    """Query for ``GET /v1/company/get``.

    ``datamerge_id`` charges one credit, ``record_id`` is free.
    """

    datamerge_id: Optional[str] = Field(default=None, description="DataMerge company ID (charges 1 credit).")
    record_id: Optional[str] = Field(default=None, description="Record UUID from a previous job (free).")
    add_to_list: Optional[str] = Field(
        default=None, description="List slug to add the company to (only with datamerge_id)."
    )

    @model_validator(mode="after")
    def _exactly_one_id(self) -> "CompanyGetParams":
        if bool(self.datamerge_id) == bool(self.record_id):
            raise ValueError("Provide either datamerge_id or record_id, not both and not neither.")
        if self.add_to_list and not self.datamerge_id:
            raise ValueError("add_to_list is only valid with datamerge_id.")
        return self

    def to_params(self) -> Dict[str, str]:
        return {k: v for k, v in self.model_dump(exclude_none=True).items() if v}


class CompanyHierarchyParams(BaseModel):
    """Query for ``GET /v1/company/hierarchy``."""

    datamerge_id: str = Field(..., min_length=1, description="DataMerge company ID.")
    include_names: Optional[bool] = Field(default=None, description="Include entity names (charges 1 credit).")
    include_branches: Optional[bool] = Field(default=None, description="Include branch entities.")
    only_subsidiaries: Optional[bool] = Field(default=None, description="Return only subsidiaries.")
    max_level: Optional[int] = Field(default=None, description="Maximum hierarchy depth.")
    country_code: Optional[List[str]] = Field(default=None, description="Filter by country codes.")
    page: Optional[int] = Field(default=None, description="Page number for pagination.")

    def to_params(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


# ── Lookalike ────────────────────────────────────────────────────────────


class PrimaryLocations(BaseModel):
    includeCountries: Optional[List[str]] = None
    excludeCountries: Optional[List[str]] = None


class YearFounded(BaseModel):
    min: Optional[int] = None
    max: Optional[int] = None


class LookalikeFilters(BaseModel):
    model_config = ConfigDict(extra="allow")

    lookalikeDomains: Optional[List[str]] = Field(
        default=None, description="Seed domains to find lookalikes for."
    )
    primaryLocations: Optional[PrimaryLocations] = None
    companySizes: Optional[List[str]] = None
    revenues: Optional[List[str]] = None
    yearFounded: Optional[YearFounded] = None


class LookalikeRequest(BaseModel):
    """Body for ``POST /v1/company/lookalike``."""

    model_config = ConfigDict(populate_by_name=True)

    companiesFilters: LookalikeFilters
    size: Optional[int] = Field(default=None, description="Max number of lookalikes to return (e.g. 50).")
    list_slug: Optional[str] = Field(default=None, alias="list", description="List slug to add results to.")
    exclude_all: Optional[bool] = Field(default=None, description="Exclude companies already in list.")

    def to_body(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


# ── Contacts ─────────────────────────────────────────────────────────────


class JobTitlesFilter(BaseModel):
    include: Optional[Dict[str, List[str]]] = None
    exclude: Optional[List[str]] = None


class LocationEntry(BaseModel):
    type: str
    value: str


class LocationFilter(BaseModel):
    include: Optional[List[LocationEntry]] = None
    exclude: Optional[List[LocationEntry]] = None


class ContactSearchRequest(BaseModel):
    """Body for ``POST /v1/contact/search``."""

    domains: Optional[List[str]] = Field(default=None, description="Company domains to search.")
    company_list: Optional[str] = Field(default=None, description="List slug instead of domains.")
    max_results_per_company: Optional[int] = Field(default=None, description="Max contacts per company.")
    job_titles: Optional[JobTitlesFilter] = None
    location: Optional[LocationFilter] = None
    enrich_fields: List[str] = Field(
        ..., min_length=1, description='e.g. ["contact.emails","contact.phones"].'
    )
    webhook: Optional[str] = Field(default=None, description="Webhook URL for completion.")

    @field_validator("webhook")
    @classmethod
    def _check_webhook(cls, v: Optional[str]) -> Optional[str]:
        return _validate_http_url(v)

    def to_body(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class LinkedInContact(BaseModel):
    linkedin_url: str = Field(..., min_length=1)


class NamedContact(BaseModel):
    firstname: str
    lastname: str
    domain: str


class ContactEnrichRequest(BaseModel):
    """Body for ``POST /v1/contact/enrich``."""

    contacts: List[Union[LinkedInContact, NamedContact]] = Field(
        ..., description="Either { linkedin_url } or { firstname, lastname, domain }."
    )
    enrich_fields: List[str] = Field(
        ..., min_length=1, description='e.g. ["contact.emails","contact.phones"].'
    )

    def to_body(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


# ── Lists ────────────────────────────────────────────────────────────────


class ListCreateRequest(BaseModel):
    """Body for ``POST /v1/lists``."""

    name: str = Field(..., min_length=1, description="List name.")
    object_type: ObjectType = Field(..., description="Type of list.")


class ListItemsParams(BaseModel):
    """Query for ``GET /v1/lists/{object_type}/{list_slug}``."""

    page: Optional[int] = None
    page_size: Optional[int] = Field(default=None, le=100, description="Max 100.")
    sort_by: Optional[str] = None
    sort_order: Optional[Literal["asc", "desc"]] = None

    def to_params(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)
