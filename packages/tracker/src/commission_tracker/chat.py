"""Chat messages and best-effort delivery.

Each message kind renders to a plain-text fallback plus structured blocks.
Delivery never raises: a failure is logged and reported as ``False`` so the
data change that triggered the message stands on its own.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any

import structlog

from commission_tracker.clients.slack import SlackClient
from commission_tracker.config import get_settings
from commission_tracker.errors import TrackerError
from commission_tracker.models import AgentIdentity, Policy
from commission_tracker.reconciliation import NotificationGroup, NotificationGroupType

logger = structlog.get_logger(__name__)


class MessageKind(str, Enum):
    NEW_POLICY = "new_policy"
    QUICK_POST = "quick_post"
    COMMISSION_RATE_CHANGE = "commission_rate_change"
    CANCELLATION_ALERT = "cancellation_alert"
    RECONCILIATION_ALERT = "reconciliation_alert"
    RECONCILIATION_ALERT_V2 = "reconciliation_alert_v2"


RECONCILIATION_KINDS = {MessageKind.RECONCILIATION_ALERT, MessageKind.RECONCILIATION_ALERT_V2}


@dataclass(frozen=True)
class ChatMessage:
    kind: MessageKind
    text: str
    blocks: list[dict[str, Any]] = field(default_factory=list)


def money(amount: Decimal) -> str:
    return f"${amount:,.2f}"


def percent(rate: Decimal) -> str:
    return f"{rate * 100:.1f}%"


def _section(text: str) -> dict[str, Any]:
    return {"type": "section", "text": {"type": "mrkdwn", "text": text}}


def _fields(pairs: list[tuple[str, str]]) -> dict[str, Any]:
    return {
        "type": "section",
        "fields": [{"type": "mrkdwn", "text": f"*{label}:*\n{value}"} for label, value in pairs],
    }


def _agent_context(agent: AgentIdentity | None) -> list[dict[str, Any]]:
    if agent is None:
        return []
    name = agent.best_display_name()
    elements: list[dict[str, Any]] = []
    if agent.avatar_url:
        elements.append({"type": "image", "image_url": agent.avatar_url, "alt_text": name})
    elements.append({"type": "mrkdwn", "text": f"*Agent:* {name}"})
    return [{"type": "context", "elements": elements}]


def new_policy_message(policy: Policy, agent: AgentIdentity | None = None) -> ChatMessage:
    agent_name = agent.best_display_name() if agent else "Unknown"
    details = [
        ("Client", policy.client),
        ("Carrier", policy.carrier),
        ("Policy Number", policy.policy_number),
        ("Premium", money(policy.commissionable_annual_premium)),
        ("Commission Rate", percent(policy.commission_rate)),
        ("Commission Due", money(policy.commission_due)),
    ]
    text = "New Policy Added!\n" + f"*Agent:* {agent_name}\n" + "\n".join(
        f"*{label}:* {value}" for label, value in details
    )
    blocks = [_section("*New Policy Added!*"), *_agent_context(agent), _fields(details)]
    return ChatMessage(MessageKind.NEW_POLICY, text, blocks)


def quick_post_message(
    policy: Policy, acronym: str = "OCC", agent: AgentIdentity | None = None
) -> ChatMessage:
    """One-line sale shout-out: ``OCC - Carrier | Product | $1,200``."""
    label = acronym.strip() or "SALE"
    text = (
        f"{label} - {policy.carrier} | {policy.product} | "
        f"${policy.commissionable_annual_premium:,.0f}"
    )
    return ChatMessage(MessageKind.QUICK_POST, text, [_section(text), *_agent_context(agent)])


def commission_rate_change_message(
    old_rate: Decimal, new_rate: Decimal, agent: AgentIdentity | None = None
) -> ChatMessage:
    change = f"Agent's commission rate has been updated from *{percent(old_rate)}* to *{percent(new_rate)}*"
    prefix = f"Agent: {agent.best_display_name()}\n" if agent else ""
    text = f"Commission Rate Update!\n{prefix}{change.replace('*', '')}"
    blocks = [_section("*Commission Rate Update!*"), *_agent_context(agent), _section(change)]
    return ChatMessage(MessageKind.COMMISSION_RATE_CHANGE, text, blocks)


def cancellation_alert_message(
    policy: Policy, cancelled_on: date, agent: AgentIdentity | None = None
) -> ChatMessage:
    details = [
        ("Client", policy.client),
        ("Carrier", policy.carrier),
        ("Policy Number", policy.policy_number),
        ("Commission at Risk", money(policy.commission_due)),
        ("Cancelled", cancelled_on.isoformat()),
    ]
    text = f"Policy Cancelled: {policy.client} ({policy.policy_number}) - " + (
        f"{money(policy.commission_due)} commission at risk. Follow up within 3 days."
    )
    blocks = [
        _section("*Policy Cancelled - retention follow-up needed*"),
        *_agent_context(agent),
        _fields(details),
    ]
    return ChatMessage(MessageKind.CANCELLATION_ALERT, text, blocks)


def reconciliation_alert_message(
    payment_date: date, period_end: date, expected_amount: Decimal, policy_count: int
) -> ChatMessage:
    """Reminder that the reconciliation window before a payday is open."""
    text = (
        f"Commission reconciliation due before {payment_date.isoformat()}: "
        f"{policy_count} policies, {money(expected_amount)} expected "
        f"(period ending {period_end.isoformat()})."
    )
    blocks = [
        _section("*Commission Reconciliation Reminder*"),
        _fields(
            [
                ("Payment Date", payment_date.isoformat()),
                ("Period End", period_end.isoformat()),
                ("Policies", str(policy_count)),
                ("Expected", money(expected_amount)),
            ]
        ),
    ]
    return ChatMessage(MessageKind.RECONCILIATION_ALERT, text, blocks)


_GROUP_TITLES = {
    NotificationGroupType.MISSING_COMMISSION: "Missing Commission",
    NotificationGroupType.REMOVAL_REQUEST: "Removal Request",
    NotificationGroupType.RECONCILIATION_COMPLETE: "Reconciliation Complete",
}


def _group_line(group: NotificationGroup, entry: Any) -> str:
    line = (
        f"- {entry.client} | {entry.carrier} | {entry.product} | "
        f"#{entry.policy_number} | {money(entry.commission)}"
    )
    if group.type == NotificationGroupType.MISSING_COMMISSION and entry.priority is not None:
        if entry.priority.value == "urgent":
            line += " | URGENT"
    if group.type == NotificationGroupType.REMOVAL_REQUEST and entry.reason:
        line += f" | Reason: {entry.reason}"
    return line


def reconciliation_group_message(
    group: NotificationGroup,
    payment_date: date,
    agent: AgentIdentity | None = None,
) -> ChatMessage:
    """Grouped reconciliation batch (one message per group type)."""
    title = _GROUP_TITLES[group.type]
    count = len(group.policies)
    header = (
        f"{title}: {count} {'policy' if count == 1 else 'policies'}, "
        f"{money(group.total_amount)} (payment {payment_date.isoformat()})"
    )
    lines = [_group_line(group, entry) for entry in group.policies]
    text = "\n".join([header, *lines])
    blocks = [
        _section(f"*{title}*"),
        *_agent_context(agent),
        _fields(
            [
                ("Payment Date", payment_date.isoformat()),
                ("Policies", str(count)),
                ("Total", money(group.total_amount)),
            ]
        ),
        _section("\n".join(lines)),
    ]
    return ChatMessage(MessageKind.RECONCILIATION_ALERT_V2, text, blocks)


class ChatNotifier:
    """Routes messages to the right channel and swallows delivery failures."""

    def __init__(
        self,
        client: SlackClient | None = None,
        general_channel: str | None = None,
        reconciliation_channel: str | None = None,
    ):
        settings = get_settings()
        self._client = client or SlackClient()
        self.general_channel = general_channel or settings.slack_channel_id
        self.reconciliation_channel = (
            reconciliation_channel or settings.slack_reconciliation_channel_id or self.general_channel
        )

    def channel_for(self, kind: MessageKind) -> str | None:
        if kind in RECONCILIATION_KINDS:
            return self.reconciliation_channel
        return self.general_channel

    async def send(self, message: ChatMessage) -> bool:
        """Post a message. Returns False (after logging) instead of raising."""
        channel = self.channel_for(message.kind)
        if not channel or not self._client.configured:
            logger.warning("chat_not_configured", kind=message.kind.value)
            return False
        try:
            await self._client.post_message(channel, message.text, message.blocks)
        except TrackerError as e:
            logger.warning(
                "chat_delivery_failed",
                kind=message.kind.value,
                channel=channel,
                error=str(e),
                retryable=e.retryable,
            )
            return False
        except Exception:
            # Delivery never fails the mutation that triggered it.
            logger.exception(
                "chat_delivery_crashed", kind=message.kind.value, channel=channel
            )
            return False
        logger.info("chat_delivered", kind=message.kind.value, channel=channel)
        return True

    async def diagnose(self) -> dict[str, Any]:
        """Check the bot token and channel access without posting anything."""
        try:
            auth = await self._client.auth_test()
        except TrackerError as e:
            return {"success": False, "error": "Authentication failed", "details": str(e)}

        for channel in {self.general_channel, self.reconciliation_channel} - {None}:
            try:
                await self._client.conversation_info(channel)
            except TrackerError as e:
                return {
                    "success": False,
                    "error": "Channel access failed",
                    "details": {"channel_id": channel, "error": str(e)},
                }

        return {
            "success": True,
            "message": "Chat setup is working correctly",
            "details": {
                "bot_name": auth.get("user"),
                "team_name": auth.get("team"),
                "channel_id": self.general_channel,
                "reconciliation_channel_id": self.reconciliation_channel,
            },
        }

    async def close(self) -> None:
        await self._client.close()
