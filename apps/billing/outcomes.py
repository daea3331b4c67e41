from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional


class OutcomeStatus(Enum):
    GENERATED = "generated"
    SKIPPED_NOT_ELIGIBLE = "skipped_not_eligible"
    SKIPPED_DUPLICATE = "skipped_duplicate"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class SubscriptionOutcome:
    subscription_id: int
    status: OutcomeStatus
    reason: str = ""
    invoice_id: Optional[int] = None
    cycle_start_at: Optional[datetime] = None

    @property
    def ok(self):
        return self.status is not OutcomeStatus.FAILED

    def as_dict(self):
        return {
            'subscription_id': self.subscription_id,
            'status': self.status.value,
            'reason': self.reason,
            'invoice_id': self.invoice_id,
            'cycle_start_at': self.cycle_start_at.isoformat() if self.cycle_start_at else None,
        }


@dataclass
class TickReport:
    """Per-subscription outcome log of one scheduler run."""

    started_at: datetime
    finished_at: Optional[datetime] = None
    outcomes: List[SubscriptionOutcome] = field(default_factory=list)

    def add(self, outcome: SubscriptionOutcome) -> None:
        self.outcomes.append(outcome)

    def counts(self):
        tally = Counter(outcome.status.value for outcome in self.outcomes)
        return {status.value: tally.get(status.value, 0) for status in OutcomeStatus}

    @property
    def failures(self):
        return [outcome for outcome in self.outcomes if not outcome.ok]

    def summary(self):
        counts = self.counts()
        return (
            f"{len(self.outcomes)} subscriptions: "
            + ", ".join(f"{counts[status.value]} {status.value}" for status in OutcomeStatus)
        )

    def as_dict(self):
        return {
            'started_at': self.started_at.isoformat(),
            'finished_at': self.finished_at.isoformat() if self.finished_at else None,
            'processed': len(self.outcomes),
            'counts': self.counts(),
            'outcomes': [outcome.as_dict() for outcome in self.outcomes],
        }
