from __future__ import annotations

import math
from collections.abc import Iterable
from datetime import datetime
from typing import ClassVar

from sefin_desk.domain.models import (
    RiskAssessment,
    RiskFactors,
    RiskLevel,
    SigningTask,
    ensure_utc,
)
from sefin_desk.domain.state_machine import SigningTaskState


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class RiskService:
    """Composite 0-100 risk score for a signing task.

    Four additive factors, each capped on its own: deviation of the process
    amount from the population average (40), urgency against the 90-day
    accountability window counted from process creation (30), hours the task
    itself has been pending (20) and a flat high-value bonus (10). The score
    depends on the clock, so it is computed per listing and never stored.
    """

    ACCOUNTABILITY_WINDOW_DAYS: ClassVar[int] = 90
    VALUE_DEVIATION_MAX: ClassVar[int] = 40
    SLA_STEPS: ClassVar[tuple[tuple[int, int], ...]] = ((7, 30), (15, 20), (30, 10))
    PENDING_HOURS_STEPS: ClassVar[tuple[tuple[int, int], ...]] = ((72, 20), (48, 15), (24, 10), (8, 5))
    HIGH_VALUE_THRESHOLDS: ClassVar[tuple[float, ...]] = (10_000.0, 14_000.0)
    HIGH_VALUE_STEP: ClassVar[int] = 5
    LEVEL_THRESHOLDS: ClassVar[tuple[tuple[int, RiskLevel], ...]] = (
        (75, RiskLevel.CRITICAL),
        (50, RiskLevel.HIGH),
        (25, RiskLevel.MEDIUM),
    )

    @staticmethod
    def population_average(tasks: Iterable[SigningTask]) -> float:
        amounts = [item.amount for item in tasks if item.status == SigningTaskState.PENDING and item.amount > 0]
        if not amounts:
            return 0.0
        return sum(amounts) / len(amounts)

    def value_deviation(self, amount: float, average: float) -> int:
        if average <= 0 or amount <= 0:
            return 0
        raw = abs(amount - average) / average * self.VALUE_DEVIATION_MAX
        return min(self.VALUE_DEVIATION_MAX, round_half_up(raw))

    def sla_urgency(self, process_created_at: datetime, now: datetime) -> int:
        days_elapsed = (ensure_utc(now) - ensure_utc(process_created_at)).days
        days_remaining = self.ACCOUNTABILITY_WINDOW_DAYS - days_elapsed
        for limit, points in self.SLA_STEPS:
            if days_remaining < limit:
                return points
        return 0

    def time_pending(self, created_at: datetime, now: datetime) -> int:
        hours = (ensure_utc(now) - ensure_utc(created_at)).total_seconds() / 3600
        for limit, points in self.PENDING_HOURS_STEPS:
            if hours > limit:
                return points
        return 0

    def historical_risk(self, amount: float) -> int:
        return sum(self.HIGH_VALUE_STEP for threshold in self.HIGH_VALUE_THRESHOLDS if amount > threshold)

    def level_for(self, score: int) -> RiskLevel:
        for threshold, level in self.LEVEL_THRESHOLDS:
            if score > threshold:
                return level
        return RiskLevel.LOW

    def score(self, task: SigningTask, population_average: float, now: datetime) -> RiskAssessment:
        factors = RiskFactors(
            value_deviation=self.value_deviation(task.amount, population_average),
            sla_urgency=self.sla_urgency(task.process_created_at, now),
            time_pending=self.time_pending(task.created_at, now),
            historical_risk=self.historical_risk(task.amount),
        )
        total = min(
            100,
            factors.value_deviation + factors.sla_urgency + factors.time_pending + factors.historical_risk,
        )
        return RiskAssessment(score=total, level=self.level_for(total), factors=factors)
