"""Domain types for recurring payables and receivables.

A *template* is an account record flagged ``is_recurring``. The projector
reads templates and writes *instances*: concrete, non-recurring records for
a single due date.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

INSTANCE_SUFFIX = " (Recorrente)"


class TemplateError(ValueError):
    """A template record could not be turned into a projectable template."""

    def __init__(self, message: str, template_id: str | None = None):
        super().__init__(message)
        self.template_id = template_id


class AccountKind(str, Enum):
    """Counterparty side of an account."""

    PAYABLE = "payable"
    RECEIVABLE = "receivable"

    @property
    def table(self) -> str:
        return "accounts_payable" if self is AccountKind.PAYABLE else "accounts_receivable"

    @property
    def counterparty_column(self) -> str:
        return "supplier_id" if self is AccountKind.PAYABLE else "customer_id"

    @property
    def copies_cost_center(self) -> bool:
        return self is AccountKind.PAYABLE


class RecurrenceFrequency(str, Enum):
    """Unit a template repeats in."""

    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"

    @classmethod
    def parse(cls, value: Any) -> "RecurrenceFrequency | None":
        """Return the matching frequency, or None when the value is unknown."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                return None
        return None


class AccountStatus(str, Enum):
    """Payment status of an account record."""

    PENDING = "pending"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


# Optional columns carried from a template onto each generated instance
_COPIED_FIELDS = (
    "payment_method",
    "bank_account_id",
    "notes",
    "document_number",
    "category_id",
)


@dataclass(frozen=True)
class DedupKey:
    """Identifies a generated instance: one per counterparty, label, date and company."""

    counterparty_id: str
    description: str
    due_date: date
    company_id: str


@dataclass
class RecurringAccountTemplate:
    """A recurring payable or receivable read from the backing store."""

    id: str
    kind: AccountKind
    company_id: str
    counterparty_id: str
    description: str
    amount: Decimal
    due_date: date
    frequency: RecurrenceFrequency | None
    raw_frequency: str | None = None
    interval: int = 1
    end_date: date | None = None
    status: AccountStatus = AccountStatus.PENDING
    is_recurring: bool = True
    cost_center_id: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def instance_description(self) -> str:
        return f"{self.description}{INSTANCE_SUFFIX}"

    def dedup_key(self, due_date: date) -> DedupKey:
        return DedupKey(
            counterparty_id=self.counterparty_id,
            description=self.instance_description,
            due_date=due_date,
            company_id=self.company_id,
        )

    def to_instance_record(self, due_date: date) -> dict[str, Any]:
        """Build the row inserted for the occurrence on ``due_date``."""
        record: dict[str, Any] = {
            "company_id": self.company_id,
            self.kind.counterparty_column: self.counterparty_id,
            "description": self.instance_description,
            "amount": str(self.amount),
            "due_date": due_date.isoformat(),
            "status": AccountStatus.PENDING.value,
            "is_recurring": False,
            "parent_transaction_id": self.id,
        }
        for name, value in self.extra.items():
            if value is not None:
                record[name] = value
        if self.kind.copies_cost_center and self.cost_center_id:
            record["cost_center_id"] = self.cost_center_id
        return record

    @classmethod
    def from_record(
        cls,
        record: dict[str, Any],
        kind: AccountKind,
        strict_frequency: bool = False,
    ) -> "RecurringAccountTemplate":
        """Parse a raw store row.

        Raises:
            TemplateError: The row is missing required data or holds values
                that cannot be projected.
        """
        template_id = record.get("id")
        template_id = str(template_id) if template_id is not None else None

        def required(name: str) -> Any:
            value = record.get(name)
            if value is None or value == "":
                raise TemplateError(f"missing {name}", template_id)
            return value

        if template_id is None:
            raise TemplateError("missing id")

        company_id = str(required("company_id"))
        counterparty_id = str(required(kind.counterparty_column))
        description = str(required("description"))
        amount = _parse_amount(required("amount"), template_id)
        due_date = _parse_date(required("due_date"), "due_date", template_id)

        end_raw = record.get("recurrence_end_date")
        end_date = _parse_date(end_raw, "recurrence_end_date", template_id) if end_raw else None

        raw_frequency = record.get("recurrence_frequency")
        frequency = RecurrenceFrequency.parse(raw_frequency)
        if frequency is None and strict_frequency:
            raise TemplateError(
                f"unknown recurrence_frequency {raw_frequency!r}", template_id
            )

        interval = _parse_interval(record.get("recurrence_interval"), template_id)

        try:
            status = AccountStatus(record.get("status") or AccountStatus.PENDING.value)
        except ValueError as e:
            raise TemplateError(f"unknown status {record.get('status')!r}", template_id) from e

        return cls(
            id=template_id,
            kind=kind,
            company_id=company_id,
            counterparty_id=counterparty_id,
            description=description,
            amount=amount,
            due_date=due_date,
            frequency=frequency,
            raw_frequency=raw_frequency if isinstance(raw_frequency, str) else None,
            interval=interval,
            end_date=end_date,
            status=status,
            is_recurring=bool(record.get("is_recurring", True)),
            cost_center_id=record.get("cost_center_id"),
            extra={name: record.get(name) for name in _COPIED_FIELDS if name in record},
        )


def _parse_amount(value: Any, template_id: str | None) -> Decimal:
    if isinstance(value, bool):
        raise TemplateError(f"invalid amount {value!r}", template_id)
    try:
        amount = Decimal(str(value))
    except InvalidOperation as e:
        raise TemplateError(f"invalid amount {value!r}", template_id) from e
    if not amount.is_finite():
        raise TemplateError(f"invalid amount {value!r}", template_id)
    return amount


def _parse_date(value: Any, name: str, template_id: str | None) -> date:
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise TemplateError(f"invalid {name} {value!r}", template_id)
    try:
        # PostgREST may hand back timestamps for date-like columns
        text = value[:10] if len(value) > 10 and value[10] in "T " else value
        return date.fromisoformat(text)
    except ValueError as e:
        raise TemplateError(f"invalid {name} {value!r}", template_id) from e


def _parse_interval(value: Any, template_id: str | None) -> int:
    if value is None:
        return 1
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise TemplateError(f"invalid recurrence_interval {value!r}", template_id)
    try:
        interval = int(value)
    except (TypeError, ValueError) as e:
        raise TemplateError(f"invalid recurrence_interval {value!r}", template_id) from e
    if interval < 1:
        raise TemplateError(f"invalid recurrence_interval {value!r}", template_id)
    return interval
