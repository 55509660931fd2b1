"""
Lead Scorer
Additive session-signals model: stage + intent history + signal history
+ engagement - time decay, clamped to 0-100 and banded into a temperature.
"""
from typing import Iterable
from closer.models.analysis import LeadScore
from closer.models.session import SessionContext
from closer.models.vocabulary import BuyingSignal, FunnelStage, Intent, LeadTemperature

STAGE_WEIGHTS = {
    FunnelStage.AWARENESS: 5,
    FunnelStage.INTEREST: 12,
    FunnelStage.EVALUATION: 20,
    FunnelStage.DECISION: 32,
    FunnelStage.CLOSING: 45,
    FunnelStage.FOLLOW_UP: 20,
    FunnelStage.REVIVAL: 10,
}

INTENT_WEIGHTS = {
    Intent.GREETING: 0,
    Intent.PRODUCT_INQUIRY: 3,
    Intent.BENEFITS: 4,
    Intent.PRICE: 10,
    Intent.ORDERING: 15,
    Intent.SHIPPING_COD: 12,
    Intent.SIDE_EFFECTS: 2,
    Intent.BUSINESS_DETAILS: 4,
    Intent.EARNING_OPPORTUNITY: 10,
    Intent.READY_TO_BUY: 25,
    Intent.FOLLOW_UP: 2,
    Intent.OBJECTION: -5,
    Intent.HESITATION: -3,
    Intent.SUPPORT: 0,
    Intent.COMPLAINT: -8,
    Intent.OFF_TOPIC: 0,
    Intent.DEFAULT: 0,
}

SIGNAL_WEIGHTS = {
    BuyingSignal.READY_TO_ORDER: 30,
    BuyingSignal.URGENCY: 15,
    BuyingSignal.QUANTITY_INQUIRY: 12,
    BuyingSignal.PAYMENT_OPTIONS: 12,
    BuyingSignal.COD_INTEREST: 10,
    BuyingSignal.DELIVERY_CHECK: 8,
    BuyingSignal.PRICE_CHECK: 8,
    BuyingSignal.PROMO_INTEREST: 5,
    BuyingSignal.VALIDATION: 4,
    BuyingSignal.PRODUCT_COMPARISON: 4,
    BuyingSignal.NONE: 0,
}

# (minimum messages, bonus), checked highest first
ENGAGEMENT_BONUSES = ((6, 10), (3, 5))

# (hours idle strictly above, penalty), checked longest first
DECAY_PENALTIES = ((24, -20), (12, -10))

# Upper bounds (exclusive) of each band; anything above is ready_to_buy
TEMPERATURE_THRESHOLDS = (
    (20, LeadTemperature.COLD),
    (45, LeadTemperature.WARM),
    (70, LeadTemperature.HOT),
)


def _clean_count(value) -> int:
    try:
        return max(0, int(value))
    except (TypeError, ValueError, OverflowError):
        return 0


def _clean_hours(value) -> float:
    """Missing, negative or NaN elapsed time means the lead just replied."""
    try:
        hours = float(value)
    except (TypeError, ValueError):
        return 0.0
    if hours != hours or hours < 0:
        return 0.0
    return hours


class LeadScorer:
    """Pure function of the supplied history; scoring the same input twice gives the same result."""

    @staticmethod
    def temperature_for(score: int) -> LeadTemperature:
        for upper, temperature in TEMPERATURE_THRESHOLDS:
            if score < upper:
                return temperature
        return LeadTemperature.READY_TO_BUY

    def compute(
        self,
        intent_history: Iterable[Intent] = (),
        signal_history: Iterable[BuyingSignal] = (),
        stage: FunnelStage = FunnelStage.AWARENESS,
        message_count: int = 0,
        hours_since_last_reply: float = 0.0,
    ) -> LeadScore:
        intents = list(intent_history or ())
        signals = list(signal_history or ())
        stage = stage or FunnelStage.AWARENESS
        message_count = _clean_count(message_count)
        hours_since_last_reply = _clean_hours(hours_since_last_reply)

        breakdown = {
            "stage": STAGE_WEIGHTS.get(stage, 0),
            "intents": sum(INTENT_WEIGHTS.get(intent, 0) for intent in intents),
            "signals": sum(SIGNAL_WEIGHTS.get(signal, 0) for signal in signals),
            "engagement": self._engagement_bonus(message_count),
            "decay": self._decay_penalty(hours_since_last_reply),
        }
        raw_score = sum(breakdown.values())
        score = max(0, min(100, raw_score))

        reasons = [f"{stage.value} stage (+{breakdown['stage']})"]
        if breakdown["intents"]:
            reasons.append(f"{len(intents)} intents ({breakdown['intents']:+d})")
        if breakdown["signals"]:
            reasons.append(f"{len(signals)} buying signals ({breakdown['signals']:+d})")
        if breakdown["engagement"]:
            reasons.append(f"{message_count} messages (+{breakdown['engagement']})")
        if breakdown["decay"]:
            reasons.append(f"{hours_since_last_reply:.0f}h since last reply ({breakdown['decay']})")

        return LeadScore(
            score=score,
            raw_score=raw_score,
            temperature=self.temperature_for(score),
            breakdown=breakdown,
            reasons=reasons,
        )

    def score_session(self, session: SessionContext) -> LeadScore:
        return self.compute(
            intent_history=session.intent_history,
            signal_history=session.signal_history,
            stage=session.current_stage,
            message_count=session.message_count,
            hours_since_last_reply=session.hours_since_last_reply,
        )

    @staticmethod
    def _engagement_bonus(message_count: int) -> int:
        for minimum, bonus in ENGAGEMENT_BONUSES:
            if message_count >= minimum:
                return bonus
        return 0

    @staticmethod
    def _decay_penalty(hours: float) -> int:
        for threshold, penalty in DECAY_PENALTIES:
            if hours > threshold:
                return penalty
        return 0
