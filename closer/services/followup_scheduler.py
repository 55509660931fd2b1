"""
Follow-up Planner for Lead Re-engagement

Decides when a quiet conversation should be nudged, how urgently, and
with which funnel-sequence message. Pure: the caller supplies the elapsed
time and owns the actual sending.
"""
import datetime as dt
import random
from dataclasses import dataclass
from typing import Iterable, List, Optional
from closer.models.vocabulary import (
    BuyingSignal,
    Channel,
    FunnelStage,
    LeadTemperature,
    Urgency,
    is_hot,
    raise_urgency,
)
from closer.sequences import SequenceLibrary, get_sequence_library
from closer.utils.observability import logger


@dataclass
class FollowUpPlan:
    """Whether to follow up now, and with what."""
    should_follow_up: bool
    urgency: Urgency
    delay_hours: float
    reason: str
    template_ref: Optional[str] = None
    message: str = ""


@dataclass
class FollowUpStep:
    """One timed message of a follow-up sequence."""
    delay_hours: float
    template_ref: str
    message: str


class FollowUpPlanner:
    """
    Stage and temperature aware follow-up timing.

    Usage:
        planner = FollowUpPlanner()

        plan = planner.plan(
            stage=FunnelStage.DECISION,
            temperature=LeadTemperature.WARM,
            hours_elapsed=8,
            signals=[BuyingSignal.COD_INTEREST],
        )
        if plan.should_follow_up:
            # Hand plan.message to the delivery channel
            ...
    """

    # Hot leads are chased on temperature alone
    TEMPERATURE_THRESHOLDS = {
        LeadTemperature.READY_TO_BUY: 0.5,
        LeadTemperature.HOT: 2,
    }

    STAGE_THRESHOLDS = {
        FunnelStage.CLOSING: 1,
        FunnelStage.DECISION: 3,
        FunnelStage.EVALUATION: 6,
        FunnelStage.INTEREST: 12,
        FunnelStage.AWARENESS: 24,
        FunnelStage.FOLLOW_UP: 48,
        FunnelStage.REVIVAL: 168,
    }

    SEQUENCE_TIMINGS = {
        LeadTemperature.READY_TO_BUY: (1, 6, 24),
        LeadTemperature.HOT: (1, 6, 24),
        LeadTemperature.WARM: (6, 24, 72),
        LeadTemperature.COLD: (24, 72, 168),
    }

    BASE_DELAYS = {
        LeadTemperature.READY_TO_BUY: 0.5,
        LeadTemperature.HOT: 2,
        LeadTemperature.WARM: 6,
        LeadTemperature.COLD: 24,
    }

    BACKOFF_FACTOR = 1.5
    MAX_DELAY_HOURS = 168

    # Signals that show money is on the lead's mind
    URGENCY_SIGNALS = {BuyingSignal.PRICE_CHECK, BuyingSignal.COD_INTEREST}

    def __init__(self, library: SequenceLibrary | None = None):
        self.library = library or get_sequence_library()

    def should_follow_up(self, hours_elapsed: float, stage: FunnelStage, temperature: LeadTemperature) -> bool:
        threshold = self.TEMPERATURE_THRESHOLDS.get(temperature)
        if threshold is None:
            threshold = self.STAGE_THRESHOLDS.get(stage, 24)
        return hours_elapsed >= threshold

    def plan(
        self,
        stage: FunnelStage,
        temperature: LeadTemperature,
        hours_elapsed: float,
        signals: Iterable[BuyingSignal] = (),
        has_order_intent: bool = False,
        rng: random.Random | None = None,
    ) -> FollowUpPlan:
        """
        Args:
            stage: Current funnel stage
            temperature: Current lead temperature
            hours_elapsed: Hours since the lead's last message
            signals: Buying signals seen in the conversation
            has_order_intent: Lead asked to order but never completed
            rng: Optional generator to vary the message; first variant otherwise

        Returns:
            FollowUpPlan with should_follow_up=False when it is too soon
        """
        if not self.should_follow_up(hours_elapsed, stage, temperature):
            return FollowUpPlan(
                should_follow_up=False,
                urgency=Urgency.LOW,
                delay_hours=0,
                reason="Too soon to follow up",
            )

        if temperature == LeadTemperature.READY_TO_BUY and has_order_intent:
            urgency, delay = Urgency.CRITICAL, 0.5
            reason = "Hot lead showed buying intent but didn't complete order"
        elif is_hot(temperature) or stage == FunnelStage.CLOSING:
            urgency, delay = Urgency.HIGH, 2
            reason = "Hot lead in closing stage - needs immediate attention"
        elif temperature == LeadTemperature.WARM or stage == FunnelStage.DECISION:
            urgency, delay = Urgency.MEDIUM, 6
            reason = "Warm lead in decision stage - good timing to nudge"
        else:
            urgency, delay = Urgency.LOW, 24
            reason = "Cold lead or early stage - gentle nurture"

        if self.URGENCY_SIGNALS.intersection(signals) and urgency in (Urgency.LOW, Urgency.MEDIUM):
            urgency = raise_urgency(urgency)

        if rng is not None:
            found = self.library.random_template(stage, rng)
        else:
            found = self.library.lookup(stage)

        logger.debug(f"Follow-up planned: stage={stage}, urgency={urgency}, delay={delay}h")

        return FollowUpPlan(
            should_follow_up=True,
            urgency=urgency,
            delay_hours=delay,
            reason=reason,
            template_ref=found.ref,
            message=found.text,
        )

    def sequence(self, stage: FunnelStage, temperature: LeadTemperature) -> List[FollowUpStep]:
        """Three timed messages, cycling through the stage's variants."""
        timings = self.SEQUENCE_TIMINGS.get(temperature, self.SEQUENCE_TIMINGS[LeadTemperature.COLD])
        steps = []
        for index, delay in enumerate(timings):
            found = self.library.lookup(stage, index)
            steps.append(FollowUpStep(delay_hours=delay, template_ref=found.ref, message=found.text))
        return steps

    def select_message(self, stage: FunnelStage, attempt: int, previous: Iterable[str] = ()) -> str:
        """First variant not yet sent; once all are used, rotate by attempt number."""
        messages = self.library.variants(stage) or self.library.variants(FunnelStage.AWARENESS)
        sent = set(previous)
        for message in messages:
            if message not in sent:
                return message
        return messages[attempt % len(messages)]

    def next_follow_up_time(
        self,
        last_follow_up: dt.datetime,
        temperature: LeadTemperature,
        attempt: int,
    ) -> dt.datetime:
        """Base delay per temperature with 1.5x backoff per attempt, capped at a week."""
        delay = self.BASE_DELAYS.get(temperature, 24) * self.BACKOFF_FACTOR ** max(attempt - 1, 0)
        delay = min(delay, self.MAX_DELAY_HOURS)
        return last_follow_up + dt.timedelta(hours=delay)

    @staticmethod
    def optimal_channel(stage: FunnelStage, temperature: LeadTemperature, message_count: int = 0) -> Channel:
        # Messenger is the fastest channel for hot leads
        if is_hot(temperature):
            return Channel.MESSENGER
        if temperature == LeadTemperature.WARM:
            return Channel.MESSENGER if message_count % 2 == 0 else Channel.WEB
        if stage in (FunnelStage.AWARENESS, FunnelStage.INTEREST):
            return Channel.EMAIL
        return Channel.MESSENGER


# Singleton instance
_planner: Optional[FollowUpPlanner] = None


def get_followup_planner() -> FollowUpPlanner:
    """Get or create the follow-up planner singleton."""
    global _planner
    if _planner is None:
        _planner = FollowUpPlanner()
    return _planner
