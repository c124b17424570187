"""Request bodies.

Amounts and dates arrive as strings or numbers and are validated by the
domain layer, so these models only fix the shape of each body.
"""

from typing import Any

from pydantic import BaseModel, Field


class PolicyIn(BaseModel):
    client: str | None = None
    carrier: str | None = None
    policy_number: str | None = None
    product: str | None = None
    policy_status: str | None = None
    commissionable_annual_premium: str | float | None = None
    commission_rate: str | float | None = None
    first_payment_date: str | None = None
    type_of_payment: str | None = None
    inforce_date: str | None = None
    date_policy_verified: str | None = None
    date_commission_paid: str | None = None
    cancelled_date: str | None = None
    comments: str | None = None
    created_at: str | None = None

    def payload(self) -> dict[str, Any]:
        """Only the fields the caller actually sent."""
        return self.model_dump(exclude_unset=True)


class QuickPostIn(BaseModel):
    acronym: str = "OCC"


class ReconciliationEntryIn(BaseModel):
    policy_id: int
    action: str | None = None
    priority: str = "normal"
    removal_reason: str = ""
    notes: str = ""


class ReconciliationSubmissionIn(BaseModel):
    period_end: str
    send_completion: bool = False
    entries: list[ReconciliationEntryIn] = Field(default_factory=list)


class AgentProfileIn(BaseModel):
    start_date: str | None = None
    license_number: str | None = None
    specializations: list[str] | str | None = None
    notes: str | None = None

    def payload(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)
