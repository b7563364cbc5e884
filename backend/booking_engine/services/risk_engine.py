"""
Risk scoring engine.

Aggregates weighted risk signals into a 0-100 score, classifies it, and
applies the admission gate:

    score <  MEDIUM threshold  -> LOW    no review, auto-approved
    score <  HIGH threshold    -> MEDIUM review required
    otherwise                  -> HIGH   review required, auto-block, fraud alert

The engine is pure. Where signal values come from lives in risk_signals.py.
The review workflow on a stored assessment is a separate small state
machine, independent of the booking lifecycle.
"""

from dataclasses import dataclass, field
from typing import Iterable, Optional

from booking_engine.core.config import get_settings
from booking_engine.core.exceptions import AlreadyResolved, ValidationError
from booking_engine.models.enums import ReviewStatus, RiskLevel, Severity

MAX_SCORE = 100

# Reference signal set. Weight per severity is non-decreasing so that raising
# a signal's severity can never lower the score.
SIGNAL_WEIGHTS: dict[str, dict[Severity, int]] = {
    "budget_above_typical_range": {Severity.LOW: 10, Severity.MEDIUM: 20, Severity.HIGH: 30},
    "new_client_email_domain": {Severity.LOW: 5, Severity.MEDIUM: 15, Severity.HIGH: 25},
    "rapid_repeat_booking": {Severity.LOW: 10, Severity.MEDIUM: 20, Severity.HIGH: 30},
    "service_budget_mismatch": {Severity.LOW: 5, Severity.MEDIUM: 10, Severity.HIGH: 20},
    "disposable_email_domain": {Severity.LOW: 20, Severity.MEDIUM: 30, Severity.HIGH: 40},
    "blacklisted_email": {Severity.LOW: 30, Severity.MEDIUM: 40, Severity.HIGH: 50},
}


@dataclass(frozen=True)
class RiskSignal:
    type: str
    severity: Severity
    weight: int
    description: str = ""

    def as_factor(self) -> dict:
        return {"type": self.type, "severity": self.severity.value, "description": self.description}


def make_signal(signal_type: str, severity: Severity, description: str = "") -> RiskSignal:
    """Build a signal whose weight comes from the reference table."""
    try:
        weight = SIGNAL_WEIGHTS[signal_type][severity]
    except KeyError:
        raise ValidationError(f"Unknown risk signal '{signal_type}'", field="signal")
    return RiskSignal(type=signal_type, severity=severity, weight=weight, description=description)


@dataclass(frozen=True)
class RiskVerdict:
    risk_score: int
    risk_level: RiskLevel
    risk_factors: list[dict] = field(default_factory=list)
    requires_review: bool = False
    auto_block: bool = False
    review_status: ReviewStatus = ReviewStatus.APPROVED

    @property
    def raises_alert(self) -> bool:
        return self.risk_level == RiskLevel.HIGH


class RiskScoringEngine:
    def __init__(self, medium_threshold: Optional[int] = None, high_threshold: Optional[int] = None):
        settings = get_settings()
        self.medium_threshold = settings.RISK_MEDIUM_THRESHOLD if medium_threshold is None else medium_threshold
        self.high_threshold = settings.RISK_HIGH_THRESHOLD if high_threshold is None else high_threshold
        if not 0 < self.medium_threshold < self.high_threshold <= MAX_SCORE:
            raise ValueError("risk thresholds must satisfy 0 < medium < high <= 100")

    def level_for(self, score: int) -> RiskLevel:
        if score < self.medium_threshold:
            return RiskLevel.LOW
        if score < self.high_threshold:
            return RiskLevel.MEDIUM
        return RiskLevel.HIGH

    def assess(self, signals: Iterable[RiskSignal]) -> RiskVerdict:
        contributing = []
        total = 0
        for signal in signals:
            if signal.weight < 0:
                raise ValidationError("risk signal weights must not be negative", field=signal.type)
            if signal.weight == 0:
                continue
            contributing.append(signal)
            total += signal.weight

        score = min(MAX_SCORE, total)
        level = self.level_for(score)
        factors = [signal.as_factor() for signal in contributing]

        if level == RiskLevel.LOW:
            return RiskVerdict(score, level, factors, requires_review=False, auto_block=False,
                               review_status=ReviewStatus.APPROVED)
        if level == RiskLevel.MEDIUM:
            return RiskVerdict(score, level, factors, requires_review=True, auto_block=False,
                               review_status=ReviewStatus.PENDING)
        return RiskVerdict(score, level, factors, requires_review=True, auto_block=True,
                           review_status=ReviewStatus.PENDING)


# Reviewer workflow on one assessment
REVIEW_TRANSITIONS: dict[ReviewStatus, frozenset[ReviewStatus]] = {
    ReviewStatus.PENDING: frozenset({
        ReviewStatus.UNDER_REVIEW, ReviewStatus.APPROVED, ReviewStatus.REJECTED, ReviewStatus.ESCALATED,
    }),
    ReviewStatus.UNDER_REVIEW: frozenset({
        ReviewStatus.APPROVED, ReviewStatus.REJECTED, ReviewStatus.ESCALATED,
    }),
}

TERMINAL_REVIEW_STATUSES = frozenset({ReviewStatus.APPROVED, ReviewStatus.REJECTED, ReviewStatus.ESCALATED})


def next_review_status(current: ReviewStatus, decision: ReviewStatus) -> ReviewStatus:
    current = ReviewStatus(current)
    decision = ReviewStatus(decision)
    if current in TERMINAL_REVIEW_STATUSES:
        raise AlreadyResolved(
            f"Assessment review is already '{current.value}'",
            review_status=current.value,
        )
    allowed = REVIEW_TRANSITIONS[current]
    if decision not in allowed:
        raise ValidationError(
            f"Review cannot move from '{current.value}' to '{decision.value}'",
            allowed_decisions=sorted(status.value for status in allowed),
        )
    return decision
