"""Normalized views over loosely-typed DataMerge payloads.

Upstream records name the same concept differently across API
versions.  Each logical attribute is resolved from an ordered list of
candidate keys; the raw mapping is always kept so nothing is lost.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

# Ordered candidate keys per logical attribute (first present wins).
COMPANY_ID_KEYS = ("record_id", "id", "datamerge_id")
COMPANY_NAME_KEYS = ("display_name", "legal_name", "name", "domain")
ULTIMATE_PARENT_KEYS = ("global_ultimate_id", "ultimate_parent_id")
CONTACT_ID_KEYS = ("record_id", "id", "contact_id")
CONTACT_NAME_KEYS = ("full_name", "name")
JOB_ID_KEYS = ("job_id", "id")

# Presence of any of these means the record actually carries data.
IDENTIFYING_KEYS = ("legal_name", "display_name", "domain", "address1", "national_id")
SPURIOUS_MISS_STATUSES = frozenset({"not_found", "no_query_match"})

UNKNOWN_NAME = "Unknown"


def first_present(raw: Mapping[str, Any], keys: Iterable[str]) -> Any:
    """Return the value of the first key holding a non-empty value."""
    for key in keys:
        value = raw.get(key)
        if value is not None and value != "":
            return value
    return None


def _as_mapping(value: Any) -> Dict[str, Any]:
    return dict(value) if isinstance(value, Mapping) else {}


def corrected_status(raw: Mapping[str, Any]) -> Any:
    """Upstream miss markers are overridden when identifying data is present."""
    status = raw.get("status")
    if status in SPURIOUS_MISS_STATUSES and any(raw.get(k) for k in IDENTIFYING_KEYS):
        return "success"
    return status


@dataclass(frozen=True)
class CompanyRecord:
    """A company record with convenience fields resolved.

    ``raw`` holds the upstream mapping exactly as received.
    """

    id: str
    name: str
    domain: Optional[str] = None
    website_url: Optional[str] = None
    country_code: Optional[str] = None
    global_ultimate: Optional[bool] = None
    parent_id: Optional[str] = None
    ultimate_parent_id: Optional[str] = None
    status: Any = None
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Any) -> CompanyRecord:
        raw = _as_mapping(data)
        record_id = first_present(raw, COMPANY_ID_KEYS)
        return cls(
            id=str(record_id) if record_id is not None else "",
            name=first_present(raw, COMPANY_NAME_KEYS) or UNKNOWN_NAME,
            domain=raw.get("domain"),
            website_url=raw.get("website_url"),
            country_code=raw.get("country_code"),
            global_ultimate=raw.get("global_ultimate"),
            parent_id=raw.get("parent_id"),
            ultimate_parent_id=first_present(raw, ULTIMATE_PARENT_KEYS),
            status=corrected_status(raw),
            raw=raw,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Flatten: normalized fields first, then every original field."""
        flat: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "domain": self.domain,
            "website_url": self.website_url,
            "country_code": self.country_code,
            "global_ultimate": self.global_ultimate,
            "parent_id": self.parent_id,
            "ultimate_parent_id": self.ultimate_parent_id,
        }
        flat.update(self.raw)
        if "status" in self.raw:
            flat["status"] = self.status
        return flat


@dataclass(frozen=True)
class ContactRecord:
    """A contact record; same lossless convention as :class:`CompanyRecord`."""

    id: str
    name: str
    firstname: Optional[str] = None
    lastname: Optional[str] = None
    domain: Optional[str] = None
    linkedin_url: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Any) -> ContactRecord:
        raw = _as_mapping(data)
        record_id = first_present(raw, CONTACT_ID_KEYS)
        first, last = raw.get("firstname"), raw.get("lastname")
        joined = " ".join(part for part in (first, last) if isinstance(part, str) and part)
        return cls(
            id=str(record_id) if record_id is not None else "",
            name=first_present(raw, CONTACT_NAME_KEYS) or joined or UNKNOWN_NAME,
            firstname=first,
            lastname=last,
            domain=raw.get("domain"),
            linkedin_url=raw.get("linkedin_url"),
            raw=raw,
        )

    def to_dict(self) -> Dict[str, Any]:
        flat: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "firstname": self.firstname,
            "lastname": self.lastname,
            "domain": self.domain,
            "linkedin_url": self.linkedin_url,
        }
        flat.update(self.raw)
        return flat


@dataclass(frozen=True)
class Job:
    """One asynchronous upstream operation as last reported.

    ``extra`` keeps unrecognised top-level keys (``type``, ``message``...).
    """

    id: str
    status: str
    results: List[Dict[str, Any]] = field(default_factory=list)
    record_ids: List[Any] = field(default_factory=list)
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(
        cls,
        data: Any,
        *,
        fallback_id: str = "",
        default_status: str = "",
        record_type: type = CompanyRecord,
    ) -> Job:
        """Parse a job payload.

        The payload may be flat or nest the job under ``result``.  Result
        entries are normalized with *record_type*.
        """
        raw = _as_mapping(data)
        inner = _as_mapping(raw.get("result")) or raw

        job_id = first_present(inner, JOB_ID_KEYS)
        if job_id is None:
            job_id = first_present(raw, JOB_ID_KEYS)
        status = raw.get("status")
        if status is None:
            status = inner.get("status")

        results_src = inner.get("results")
        if not isinstance(results_src, list):
            results_src = raw.get("results")
        results = [
            record_type.from_dict(r).to_dict()
            for r in (results_src if isinstance(results_src, list) else [])
        ]

        record_ids = inner.get("record_ids")
        if not isinstance(record_ids, list):
            record_ids = raw.get("record_ids")

        known = {"job_id", "id", "status", "result", "results", "record_ids"}
        return cls(
            id=str(job_id) if job_id is not None else fallback_id,
            status=str(status) if status is not None else default_status,
            results=results,
            record_ids=list(record_ids) if isinstance(record_ids, list) else [],
            extra={k: v for k, v in raw.items() if k not in known},
        )

    def to_dict(self) -> Dict[str, Any]:
        flat: Dict[str, Any] = {"job_id": self.id, "status": self.status}
        flat.update(self.extra)
        flat["results"] = self.results
        if self.record_ids:
            flat["record_ids"] = self.record_ids
        return flat


@dataclass(frozen=True)
class CompanyHierarchy:
    """A company with its parents and children, all normalized."""

    company: Optional[CompanyRecord]
    parents: List[CompanyRecord] = field(default_factory=list)
    children: List[CompanyRecord] = field(default_factory=list)
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Any) -> CompanyHierarchy:
        """Accept ``{company, parents, children}``, ``{record, ...}`` or ``{entities}``."""
        raw = _as_mapping(data)
        entities = raw.get("entities") if isinstance(raw.get("entities"), list) else []

        company_raw = raw.get("company") or raw.get("record")
        if not company_raw and entities:
            company_raw = entities[0]

        parents_raw = first_present(raw, ("parents", "parent_companies")) or []
        children_raw = first_present(raw, ("children", "subsidiaries")) or []
        if not children_raw and len(entities) > 1:
            children_raw = entities[1:]

        known = {
            "company",
            "record",
            "entities",
            "parents",
            "parent_companies",
            "children",
            "subsidiaries",
        }
        return cls(
            company=CompanyRecord.from_dict(company_raw) if company_raw else None,
            parents=_records(parents_raw),
            children=_records(children_raw),
            extra={k: v for k, v in raw.items() if k not in known},
        )

    def to_dict(self) -> Dict[str, Any]:
        flat: Dict[str, Any] = dict(self.extra)
        flat.update(
            {
                "company": self.company.to_dict() if self.company else {},
                "parents": [p.to_dict() for p in self.parents],
                "children": [c.to_dict() for c in self.children],
            }
        )
        if "entities" in flat:
            del flat["entities"]
        return flat


def _records(items: Any) -> List[CompanyRecord]:
    if not isinstance(items, Sequence) or isinstance(items, (str, bytes)):
        return []
    return [CompanyRecord.from_dict(item) for item in items]


@dataclass(frozen=True)
class CreditsBalance:
    credits_balance: Any = 0
    balances: Optional[Dict[str, Any]] = None

    @classmethod
    def from_dict(cls, data: Any) -> CreditsBalance:
        raw = _as_mapping(data)
        balances = raw.get("balances") if isinstance(raw.get("balances"), Mapping) else None
        total = raw.get("credits_balance")
        if total is None and balances is not None:
            total = balances.get("total")
        return cls(credits_balance=total if total is not None else 0, balances=balances)

    def to_dict(self) -> Dict[str, Any]:
        flat: Dict[str, Any] = {"credits_balance": self.credits_balance}
        if self.balances is not None:
            flat["balances"] = self.balances
        return flat
