"""Recurring accounts - generates upcoming payables and receivables from recurring templates."""

__version__ = "1.0.0"

from recurring_accounts.clients import BackingStoreError, RestStoreClient
from recurring_accounts.config import configure_logging, get_settings
from recurring_accounts.models import (
    AccountKind,
    AccountStatus,
    RecurrenceFrequency,
    RecurringAccountTemplate,
    TemplateError,
)
from recurring_accounts.projector import (
    MaterializeOutcome,
    ProjectionOptions,
    ProjectionSummary,
    RecurrenceProjector,
)
from recurring_accounts.recurrence import (
    LOOKAHEAD_DAYS,
    compute_next_due_date,
    should_materialize,
)

__all__ = [
    # Version
    "__version__",
    # Domain
    "AccountKind",
    "AccountStatus",
    "RecurrenceFrequency",
    "RecurringAccountTemplate",
    "TemplateError",
    # Projection
    "LOOKAHEAD_DAYS",
    "compute_next_due_date",
    "should_materialize",
    "MaterializeOutcome",
    "ProjectionOptions",
    "ProjectionSummary",
    "RecurrenceProjector",
    # Store
    "BackingStoreError",
    "RestStoreClient",
    # Config
    "get_settings",
    "configure_logging",
]
