"""Recurrence projector: turns pending recurring templates into instances.

Each run re-derives the next occurrence of every template from its stored
due date, creates the instance when it falls inside the lookahead window,
and relies on a de-duplication lookup so repeated runs never duplicate
an instance.
"""

import asyncio
import time
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from enum import Enum
from typing import Any
from zoneinfo import ZoneInfo

import structlog

from recurring_accounts.clients.backing_store import (
    BackingStore,
    BackingStoreError,
    ConflictError,
)
from recurring_accounts.config.settings import Settings
from recurring_accounts.models import (
    AccountKind,
    AccountStatus,
    RecurringAccountTemplate,
    TemplateError,
)
from recurring_accounts.recurrence import (
    LOOKAHEAD_DAYS,
    compute_next_due_date,
    should_materialize,
)

logger = structlog.get_logger(__name__)

SUCCESS_MESSAGE = "Recorrências processadas com sucesso"


class MaterializeOutcome(str, Enum):
    """Result of trying to create one instance."""

    CREATED = "created"
    SKIPPED = "skipped"


class TemplateOutcome(str, Enum):
    """What happened to one template during a run."""

    CREATED = "created"
    SKIPPED = "skipped"
    NOT_DUE = "not_due"
    FAILED = "failed"


@dataclass
class MaterializeResult:
    """Outcome of ``materialize`` for a single occurrence."""

    outcome: MaterializeOutcome
    due_date: date
    record: dict[str, Any] | None = None


@dataclass(frozen=True)
class ProjectionOptions:
    """Tunables for a projection run."""

    lookahead_days: int = LOOKAHEAD_DAYS
    strict_frequency: bool = False
    timezone: str = "UTC"

    @classmethod
    def from_settings(cls, settings: Settings) -> "ProjectionOptions":
        return cls(
            lookahead_days=settings.lookahead_days,
            strict_frequency=settings.strict_frequency,
            timezone=settings.timezone,
        )

    def today(self) -> date:
        tz = UTC if self.timezone.upper() == "UTC" else ZoneInfo(self.timezone)
        return datetime.now(tz).date()


@dataclass
class ProjectionSummary:
    """Aggregate counts for one run."""

    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    payables_created: int = 0
    receivables_created: int = 0
    skipped: int = 0
    not_due: int = 0
    failed: int = 0
    execution_time_ms: int = 0

    @property
    def total_created(self) -> int:
        return self.payables_created + self.receivables_created

    def record(self, kind: AccountKind, outcome: TemplateOutcome) -> None:
        if outcome is TemplateOutcome.CREATED:
            if kind is AccountKind.PAYABLE:
                self.payables_created += 1
            else:
                self.receivables_created += 1
        elif outcome is TemplateOutcome.SKIPPED:
            self.skipped += 1
        elif outcome is TemplateOutcome.NOT_DUE:
            self.not_due += 1
        else:
            self.failed += 1

    def to_response(self) -> dict[str, Any]:
        """Serialize to the success body returned to callers."""
        return {
            "success": True,
            "message": SUCCESS_MESSAGE,
            "timestamp": datetime.now(UTC).isoformat(),
            "execution_time_ms": self.execution_time_ms,
            "summary": {
                "payables_created": self.payables_created,
                "receivables_created": self.receivables_created,
                "total_created": self.total_created,
                "skipped": self.skipped,
                "not_due": self.not_due,
                "failed": self.failed,
            },
        }


def failure_response(error: BaseException, execution_time_ms: int) -> dict[str, Any]:
    """Serialize a run that could not complete."""
    return {
        "success": False,
        "error": str(error) or error.__class__.__name__,
        "timestamp": datetime.now(UTC).isoformat(),
        "execution_time_ms": execution_time_ms,
    }


class RecurrenceProjector:
    """Scans recurring templates and materializes their next occurrence."""

    def __init__(self, store: BackingStore, options: ProjectionOptions | None = None):
        self.store = store
        self.options = options or ProjectionOptions()

    async def fetch_templates(self, kind: AccountKind) -> list[dict[str, Any]]:
        """Fetch pending templates of one kind.

        Raises:
            BackingStoreError: The store could not be queried.
        """
        records = await self.store.query(
            kind.table,
            {"is_recurring": True, "status": AccountStatus.PENDING.value},
        )
        logger.info("templates_fetched", kind=kind.value, count=len(records))
        return records

    async def materialize(
        self, template: RecurringAccountTemplate, next_due_date: date
    ) -> MaterializeResult:
        """Create the instance for ``next_due_date`` unless it already exists.

        Raises:
            BackingStoreError: The lookup or insert failed for a reason other
                than a uniqueness conflict.
        """
        key = template.dedup_key(next_due_date)
        existing = await self.store.query(
            template.kind.table,
            {
                template.kind.counterparty_column: key.counterparty_id,
                "description": key.description,
                "due_date": key.due_date,
                "company_id": key.company_id,
            },
            select="id",
            limit=1,
        )
        if existing:
            logger.info(
                "instance_exists",
                template_id=template.id,
                kind=template.kind.value,
                due_date=next_due_date.isoformat(),
            )
            return MaterializeResult(MaterializeOutcome.SKIPPED, next_due_date)

        try:
            created = await self.store.insert(
                template.kind.table, template.to_instance_record(next_due_date)
            )
        except ConflictError:
            # Another run inserted the same key first
            logger.info(
                "instance_conflict",
                template_id=template.id,
                kind=template.kind.value,
                due_date=next_due_date.isoformat(),
            )
            return MaterializeResult(MaterializeOutcome.SKIPPED, next_due_date)

        logger.info(
            "instance_created",
            template_id=template.id,
            instance_id=created.get("id"),
            kind=template.kind.value,
            due_date=next_due_date.isoformat(),
            amount=str(template.amount),
        )
        return MaterializeResult(MaterializeOutcome.CREATED, next_due_date, created)

    async def process_template(
        self, record: dict[str, Any], kind: AccountKind, today: date
    ) -> TemplateOutcome:
        """Project one template. Never raises for per-template problems."""
        try:
            template = RecurringAccountTemplate.from_record(
                record, kind, strict_frequency=self.options.strict_frequency
            )
        except TemplateError as e:
            logger.warning(
                "template_invalid",
                template_id=e.template_id,
                kind=kind.value,
                error=str(e),
            )
            return TemplateOutcome.FAILED

        try:
            next_due_date = compute_next_due_date(
                template.due_date,
                template.frequency or template.raw_frequency,
                template.interval,
                template_id=template.id,
            )
        except OverflowError as e:
            logger.warning(
                "template_invalid",
                template_id=template.id,
                kind=kind.value,
                error=str(e),
            )
            return TemplateOutcome.FAILED

        if not should_materialize(
            template, next_due_date, today, self.options.lookahead_days
        ):
            if template.end_date is not None and next_due_date > template.end_date:
                logger.debug(
                    "template_series_ended",
                    template_id=template.id,
                    next_due_date=next_due_date.isoformat(),
                    end_date=template.end_date.isoformat(),
                )
            else:
                logger.debug(
                    "template_not_due",
                    template_id=template.id,
                    next_due_date=next_due_date.isoformat(),
                )
            return TemplateOutcome.NOT_DUE

        try:
            result = await self.materialize(template, next_due_date)
        except BackingStoreError as e:
            logger.error(
                "template_failed",
                template_id=template.id,
                kind=kind.value,
                error=str(e),
                status_code=e.status_code,
            )
            return TemplateOutcome.FAILED

        if result.outcome is MaterializeOutcome.CREATED:
            return TemplateOutcome.CREATED
        return TemplateOutcome.SKIPPED

    async def _run_kind(
        self, kind: AccountKind, records: list[dict[str, Any]], today: date
    ) -> list[TemplateOutcome]:
        outcomes = []
        for record in records:
            outcomes.append(await self.process_template(record, kind, today))
        return outcomes

    async def run_projection(self, today: date | None = None) -> ProjectionSummary:
        """Run one full pass over payable and receivable templates.

        Raises:
            BackingStoreError: Templates could not be fetched.
        """
        today = today or self.options.today()
        summary = ProjectionSummary()
        started = time.monotonic()
        logger.info(
            "projection_started",
            today=today.isoformat(),
            lookahead_days=self.options.lookahead_days,
        )

        kinds = (AccountKind.PAYABLE, AccountKind.RECEIVABLE)
        # Every fetch must succeed before any instance is written
        fetched = await _run_all(self.fetch_templates(kind) for kind in kinds)
        results = await _run_all(
            self._run_kind(kind, records, today) for kind, records in zip(kinds, fetched)
        )
        for kind, outcomes in zip(kinds, results):
            for outcome in outcomes:
                summary.record(kind, outcome)

        summary.execution_time_ms = int((time.monotonic() - started) * 1000)
        logger.info(
            "projection_completed",
            payables_created=summary.payables_created,
            receivables_created=summary.receivables_created,
            skipped=summary.skipped,
            not_due=summary.not_due,
            failed=summary.failed,
            execution_time_ms=summary.execution_time_ms,
        )
        return summary


async def _run_all(coros) -> list[Any]:
    """Run coroutines concurrently, cancelling the rest when one fails."""
    try:
        async with asyncio.TaskGroup() as tg:
            tasks = [tg.create_task(coro) for coro in coros]
    except ExceptionGroup as eg:
        raise eg.exceptions[0]
    return [task.result() for task in tasks]
