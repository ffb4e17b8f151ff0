"""Public typed contracts for seller_quality."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Literal, Optional

SourceType = Literal["csv", "sheets", "history", "sample"]


def weekly_rate(issue_count: int, delivered_count: int) -> float:
    """Issue share of delivered order lines; 0 when nothing was delivered."""
    if not delivered_count:
        return 0.0
    return round(issue_count / delivered_count, 6)


class DataAccessError(RuntimeError):
    """Raised when a backing table or row is missing or too short."""


class TemplateError(RuntimeError):
    """Raised when an email template cannot be loaded or rendered."""


class DeliveryError(RuntimeError):
    """Raised when the mail transport rejects a single recipient."""


class EscalationInvariantError(RuntimeError):
    """Raised when a notifying action has no currently failing metric behind it."""


class Action(str, Enum):
    NO_ACTION = "No Action"
    FIRST_WARNING = "Send First Warning"
    LAST_WARNING = "Send Last Warning"
    SUSPENSION = "Send Suspension Notice"

    @property
    def severity(self) -> int:
        return ACTION_SEVERITY[self]

    @classmethod
    def parse(cls, raw: object) -> "Action":
        text = str(raw or "").strip()
        if not text:
            return cls.NO_ACTION
        for action in cls:
            if action.value.lower() == text.lower():
                return action
        raise ValueError(f"Unknown action: {text!r}")


# Higher is more severe.
ACTION_SEVERITY = {
    Action.NO_ACTION: 0,
    Action.FIRST_WARNING: 1,
    Action.LAST_WARNING: 2,
    Action.SUSPENSION: 3,
}


class Label(str, Enum):
    CRITICAL = "Critical"
    ALERTING = "Alerting"
    HISTORICAL = "Historical"
    NONE = ""

    @property
    def is_failing(self) -> bool:
        return self in (Label.CRITICAL, Label.ALERTING)

    @classmethod
    def parse(cls, raw: object) -> "Label":
        text = str(raw or "").strip()
        for label in cls:
            if label.value.lower() == text.lower():
                return label
        raise ValueError(f"Unknown label: {text!r}")


class EmailType(str, Enum):
    """Wire value used in URL parameters and the tracking table."""

    FIRST_WARNING = "first_warning"
    LAST_WARNING = "last_warning"
    SUSPENSION = "suspension"

    @classmethod
    def for_action(cls, action: Action) -> "EmailType":
        try:
            return _EMAIL_TYPE_BY_ACTION[action]
        except KeyError as exc:
            raise ValueError(f"No email is sent for action {action.value!r}") from exc

    @classmethod
    def parse(cls, raw: object) -> "EmailType":
        text = str(raw or "").strip().lower().replace("-", "_").replace(" ", "_")
        aliases = {"first": "first_warning", "last": "last_warning", "suspension_notice": "suspension"}
        text = aliases.get(text, text)
        for email_type in cls:
            if email_type.value == text:
                return email_type
        raise ValueError(f"Unknown email type: {raw!r}")


_EMAIL_TYPE_BY_ACTION = {
    Action.FIRST_WARNING: EmailType.FIRST_WARNING,
    Action.LAST_WARNING: EmailType.LAST_WARNING,
    Action.SUSPENSION: EmailType.SUSPENSION,
}


class ResponseStatus(str, Enum):
    PENDING = "Pending"
    IN_PROGRESS = "In Progress"
    RESOLVED = "Resolved"


@dataclass(slots=True, frozen=True)
class WeeklyObservation:
    seller_id: str
    week_start: date
    issue_count: int
    delivered_count: int

    @property
    def rate(self) -> float:
        return weekly_rate(self.issue_count, self.delivered_count)


@dataclass(slots=True, frozen=True)
class MetricStatus:
    failing: bool
    streak: int
    historical_streak: int
    rate: float
    issue_count: int
    label: Label


@dataclass(slots=True)
class SellerSnapshot:
    seller_id: str
    seller_name: str
    owner_name: str
    tier: str
    activity_type: str
    defective_rate: float
    defective_count: int
    defective_streak: int
    defective_label: Label
    defective_action: Action
    appearance_rate: float
    appearance_count: int
    appearance_streak: int
    appearance_label: Label
    appearance_action: Action
    final_action: Action
    email: str
    week_number: str
    date_kpi: Optional[date] = None
    time_period: str = ""

    @property
    def defective_failing(self) -> bool:
        return self.defective_label.is_failing

    @property
    def appearance_failing(self) -> bool:
        return self.appearance_label.is_failing


@dataclass(slots=True)
class TrackingRecord:
    tracking_id: str
    email: str
    seller_id: str
    email_type: str
    send_timestamp: str
    open_timestamp: str = ""
    opened: bool = False
    view_count: int = 0


@dataclass(slots=True)
class ResponseRecord:
    seller_id: str
    seller_name: str
    defective_rate: float
    defective_streak: int
    defective_label: str
    appearance_rate: float
    appearance_streak: int
    appearance_label: str
    week_number: str
    send_timestamp: str
    response_timestamp: str = ""
    response_received: bool = False
    resolution_status: str = ResponseStatus.PENDING.value
    notes: str = ""


@dataclass(slots=True)
class RunStats:
    processed: int = 0
    emails_sent: int = 0
    errors: int = 0
    skipped_no_email: int = 0
    skipped_no_action: int = 0
    excluded: int = 0
    invalid_addresses: int = 0
    failed_addresses: int = 0
    template_fallbacks: int = 0
    data_errors: int = 0
    store_errors: int = 0
    actions: dict[str, int] = field(default_factory=dict)


@dataclass(slots=True)
class RunResult:
    run_id: str
    started_at: datetime
    stats: RunStats
    artifacts: dict[str, str]
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["started_at"] = self.started_at.isoformat()
        return payload
