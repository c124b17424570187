"""Record types for policies, agent profiles, contact attempts and identities.

Rows come from the data store as JSON dictionaries; ``from_row`` and
``to_row`` are the only places where field names and encodings are mapped.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Any

from commission_tracker.dates import (
    parse_date,
    parse_optional_date,
    parse_optional_timestamp,
    parse_timestamp,
)
from commission_tracker.errors import ValidationFailed

CENTS = Decimal("0.01")


class PolicyStatus(str, Enum):
    """Lifecycle status of a policy."""

    PENDING = "Pending"
    ACTIVE = "Active"
    CANCELLED = "Cancelled"


def to_decimal(value: Any, field_name: str = "amount") -> Decimal:
    """Convert a JSON number or string to a finite Decimal without float artifacts."""
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValidationFailed(
            f"Invalid {field_name}", problems=[f"{field_name}: {value!r} is not a number"]
        ) from exc
    if not result.is_finite():
        raise ValidationFailed(
            f"Invalid {field_name}", problems=[f"{field_name}: {value!r} is not a finite number"]
        )
    return result


def compute_commission_due(premium: Decimal, rate: Decimal) -> Decimal:
    """Commission owed for a policy: premium x rate, rounded half-up to cents."""
    return (premium * rate).quantize(CENTS, rounding=ROUND_HALF_UP)


def _validate_amounts(premium: Decimal, rate: Decimal) -> None:
    problems = []
    if premium < 0:
        problems.append("commissionable_annual_premium must not be negative")
    if rate < 0 or rate > 1:
        problems.append("commission_rate must be between 0 and 1")
    if problems:
        raise ValidationFailed("Invalid policy amounts", problems=problems)


def _iso(value: date | datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


@dataclass(frozen=True)
class Policy:
    """A policy row as stored for one agent."""

    id: int
    user_id: str
    client: str
    carrier: str
    policy_number: str
    product: str
    policy_status: PolicyStatus
    commissionable_annual_premium: Decimal
    commission_rate: Decimal
    commission_due: Decimal
    created_at: datetime
    first_payment_date: date | None = None
    type_of_payment: str | None = None
    inforce_date: date | None = None
    date_policy_verified: datetime | None = None
    date_commission_paid: datetime | None = None
    cancelled_date: date | None = None
    comments: str | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> Policy:
        """Build a policy from a data store row.

        The stored ``commission_due`` is kept as-is (so drift can be detected);
        it is only derived when the row has none.
        """
        premium = to_decimal(row.get("commissionable_annual_premium", 0), "premium")
        rate = to_decimal(row.get("commission_rate", 0), "commission_rate")
        stored_due = row.get("commission_due")
        due = (
            to_decimal(stored_due, "commission_due")
            if stored_due is not None
            else compute_commission_due(premium, rate)
        )
        return cls(
            id=int(row["id"]),
            user_id=str(row["user_id"]),
            client=row.get("client") or "",
            carrier=row.get("carrier") or "",
            policy_number=row.get("policy_number") or "",
            product=row.get("product") or "",
            policy_status=PolicyStatus(row.get("policy_status") or PolicyStatus.PENDING.value),
            commissionable_annual_premium=premium,
            commission_rate=rate,
            commission_due=due,
            created_at=parse_timestamp(row["created_at"]),
            first_payment_date=parse_optional_date(row.get("first_payment_date")),
            type_of_payment=row.get("type_of_payment"),
            inforce_date=parse_optional_date(row.get("inforce_date")),
            date_policy_verified=parse_optional_timestamp(row.get("date_policy_verified")),
            date_commission_paid=parse_optional_timestamp(row.get("date_commission_paid")),
            cancelled_date=parse_optional_date(row.get("cancelled_date")),
            comments=row.get("comments"),
        )

    @property
    def expected_commission_due(self) -> Decimal:
        """Commission recomputed from premium and rate."""
        return compute_commission_due(self.commissionable_annual_premium, self.commission_rate)

    @property
    def has_rounding_drift(self) -> bool:
        """True when the stored commission_due disagrees with premium x rate."""
        return self.commission_due != self.expected_commission_due

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "client": self.client,
            "carrier": self.carrier,
            "policy_number": self.policy_number,
            "product": self.product,
            "policy_status": self.policy_status.value,
            "commissionable_annual_premium": str(self.commissionable_annual_premium),
            "commission_rate": str(self.commission_rate),
            "commission_due": str(self.commission_due),
            "first_payment_date": _iso(self.first_payment_date),
            "type_of_payment": self.type_of_payment,
            "inforce_date": _iso(self.inforce_date),
            "date_policy_verified": _iso(self.date_policy_verified),
            "date_commission_paid": _iso(self.date_commission_paid),
            "cancelled_date": _iso(self.cancelled_date),
            "comments": self.comments,
            "created_at": self.created_at.isoformat(),
        }

    @property
    def is_paid(self) -> bool:
        return self.date_commission_paid is not None

    @property
    def is_verified(self) -> bool:
        return self.date_policy_verified is not None


@dataclass(frozen=True)
class PolicyDraft:
    """Agent-supplied policy fields for create and update paths.

    ``commission_due`` is never accepted from callers; ``to_row`` derives it.
    """

    client: str
    carrier: str
    policy_number: str
    product: str
    commissionable_annual_premium: Decimal
    commission_rate: Decimal
    policy_status: PolicyStatus = PolicyStatus.PENDING
    first_payment_date: date | None = None
    type_of_payment: str | None = None
    inforce_date: date | None = None
    date_policy_verified: datetime | None = None
    date_commission_paid: datetime | None = None
    cancelled_date: date | None = None
    comments: str | None = None
    created_at: datetime | None = None

    def __post_init__(self) -> None:
        _validate_amounts(self.commissionable_annual_premium, self.commission_rate)

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> PolicyDraft:
        """Build a draft from a request body, trimming text fields."""
        problems = [
            f"{name} is required"
            for name in ("client", "carrier", "policy_number", "product")
            if not str(payload.get(name) or "").strip()
        ]
        for name in ("commissionable_annual_premium", "commission_rate"):
            if payload.get(name) is None:
                problems.append(f"{name} is required")
        if problems:
            raise ValidationFailed("Invalid policy", problems=problems)

        status = payload.get("policy_status") or PolicyStatus.PENDING.value
        try:
            policy_status = PolicyStatus(status)
        except ValueError as exc:
            raise ValidationFailed(
                "Invalid policy", problems=[f"policy_status: {status!r} is not a valid status"]
            ) from exc

        return cls(
            client=str(payload["client"]).strip(),
            carrier=str(payload["carrier"]).strip(),
            policy_number=str(payload["policy_number"]).strip(),
            product=str(payload["product"]).strip(),
            commissionable_annual_premium=to_decimal(
                payload["commissionable_annual_premium"], "commissionable_annual_premium"
            ),
            commission_rate=to_decimal(payload["commission_rate"], "commission_rate"),
            policy_status=policy_status,
            first_payment_date=parse_optional_date(payload.get("first_payment_date")),
            type_of_payment=payload.get("type_of_payment") or None,
            inforce_date=parse_optional_date(payload.get("inforce_date")),
            date_policy_verified=parse_optional_timestamp(payload.get("date_policy_verified")),
            date_commission_paid=parse_optional_timestamp(payload.get("date_commission_paid")),
            cancelled_date=parse_optional_date(payload.get("cancelled_date")),
            comments=payload.get("comments") or None,
            created_at=parse_optional_timestamp(payload.get("created_at")),
        )

    @classmethod
    def from_policy(cls, policy: Policy) -> PolicyDraft:
        """Editable fields of an existing policy."""
        return cls(
            client=policy.client,
            carrier=policy.carrier,
            policy_number=policy.policy_number,
            product=policy.product,
            commissionable_annual_premium=policy.commissionable_annual_premium,
            commission_rate=policy.commission_rate,
            policy_status=policy.policy_status,
            first_payment_date=policy.first_payment_date,
            type_of_payment=policy.type_of_payment,
            inforce_date=policy.inforce_date,
            date_policy_verified=policy.date_policy_verified,
            date_commission_paid=policy.date_commission_paid,
            cancelled_date=policy.cancelled_date,
            comments=policy.comments,
            created_at=policy.created_at,
        )

    def with_changes(self, **changes: Any) -> PolicyDraft:
        return replace(self, **changes)

    @property
    def commission_due(self) -> Decimal:
        return compute_commission_due(self.commissionable_annual_premium, self.commission_rate)

    def to_row(self) -> dict[str, Any]:
        """Serialize for insert/update, always including the derived commission."""
        row: dict[str, Any] = {
            "client": self.client,
            "carrier": self.carrier,
            "policy_number": self.policy_number,
            "product": self.product,
            "policy_status": self.policy_status.value,
            "commissionable_annual_premium": str(self.commissionable_annual_premium),
            "commission_rate": str(self.commission_rate),
            "commission_due": str(self.commission_due),
            "first_payment_date": _iso(self.first_payment_date),
            "type_of_payment": self.type_of_payment,
            "inforce_date": _iso(self.inforce_date),
            "date_policy_verified": _iso(self.date_policy_verified),
            "date_commission_paid": _iso(self.date_commission_paid),
            "cancelled_date": _iso(self.cancelled_date),
            "comments": self.comments,
        }
        if self.created_at is not None:
            row["created_at"] = self.created_at.isoformat()
        return row


def parse_specializations(value: Any) -> list[str]:
    """Normalize stored specializations to an ordered list of strings.

    Legacy rows hold a JSON-encoded list or a comma-separated string; both
    decode to the same list shape as rows written by current code.
    """
    if value is None:
        return []
    if isinstance(value, list):
        return [str(item).strip() for item in value if str(item).strip()]
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return []
        if text.startswith("["):
            try:
                decoded = json.loads(text)
            except json.JSONDecodeError:
                decoded = None
            if isinstance(decoded, list):
                return parse_specializations(decoded)
            text = text.strip("[]")
        return [part.strip().strip('"') for part in text.split(",") if part.strip().strip('"')]
    return [str(value)]


def serialize_specializations(values: list[str]) -> list[str] | None:
    """Storage form of specializations: a plain list, or None when empty."""
    cleaned = parse_specializations(values)
    return cleaned or None


@dataclass(frozen=True)
class AgentProfile:
    """Per-agent profile; exactly one row per user_id."""

    user_id: str
    id: int | None = None
    start_date: date | None = None
    license_number: str | None = None
    specializations: list[str] = field(default_factory=list)
    notes: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def blank(cls, user_id: str) -> AgentProfile:
        """Default profile shown before the agent has saved one."""
        return cls(user_id=user_id)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> AgentProfile:
        return cls(
            id=row.get("id"),
            user_id=str(row["user_id"]),
            start_date=parse_optional_date(row.get("start_date")),
            license_number=row.get("license_number"),
            specializations=parse_specializations(row.get("specializations")),
            notes=row.get("notes"),
            created_at=parse_optional_timestamp(row.get("created_at")),
            updated_at=parse_optional_timestamp(row.get("updated_at")),
        )

    def to_row(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "start_date": _iso(self.start_date),
            "license_number": self.license_number,
            "specializations": serialize_specializations(self.specializations),
            "notes": self.notes,
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            **self.to_row(),
            "specializations": list(self.specializations),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


@dataclass(frozen=True)
class ContactAttempt:
    """One logged client call for a cancelled policy."""

    policy_id: int
    user_id: str
    contact_date: date

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> ContactAttempt:
        return cls(
            policy_id=int(row["policy_id"]),
            user_id=str(row["user_id"]),
            contact_date=parse_date(row["contact_date"]),
        )

    def to_row(self) -> dict[str, Any]:
        return {
            "policy_id": self.policy_id,
            "user_id": self.user_id,
            "contact_date": self.contact_date.isoformat(),
        }


@dataclass(frozen=True)
class AgentIdentity:
    """The authenticated agent as reported by the identity provider."""

    user_id: str
    name: str | None = None
    email: str | None = None
    avatar_url: str | None = None
    first_name: str | None = None
    last_name: str | None = None

    def best_display_name(self) -> str:
        """Full name, else first/last name, else a name parsed from the email."""
        if self.name:
            return self.name
        if self.first_name and self.last_name:
            return f"{self.first_name} {self.last_name}"
        if self.first_name:
            return self.first_name
        if self.email:
            return name_from_email(self.email)
        return "Unknown Agent"


def name_from_email(email: str) -> str:
    """Turn ``jane.doe@example.com`` into ``Jane Doe``."""
    if not email:
        return "Unknown User"
    local_part = email.split("@")[0]
    for separator in (".", "_", "-"):
        if separator in local_part:
            return " ".join(part.capitalize() for part in local_part.split(separator) if part)
    return local_part.capitalize()
