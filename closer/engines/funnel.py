"""
Funnel State Machine
Moves a conversation through awareness < interest < evaluation < decision < closing,
with follow_up and revival reachable from anywhere.
"""
from dataclasses import dataclass
from typing import Mapping, Optional
from loguru import logger
from closer.config import get_settings
from closer.engines.intent_classifier import IntentClassifier
from closer.models.analysis import FunnelStep
from closer.models.vocabulary import (
    FunnelStage,
    Intent,
    LeadTemperature,
    is_hot,
    is_side_stage,
    stage_rank,
)

RANK_ORDER = ("Starter", "Bronze", "Silver", "Gold", "Platinum", "Diamond")

STAGE_BY_INTENT = {
    Intent.GREETING: FunnelStage.AWARENESS,
    Intent.OFF_TOPIC: FunnelStage.AWARENESS,
    Intent.DEFAULT: FunnelStage.AWARENESS,
    Intent.PRODUCT_INQUIRY: FunnelStage.INTEREST,
    Intent.BENEFITS: FunnelStage.INTEREST,
    Intent.PRICE: FunnelStage.EVALUATION,
    Intent.SIDE_EFFECTS: FunnelStage.EVALUATION,
    Intent.BUSINESS_DETAILS: FunnelStage.EVALUATION,
    Intent.HESITATION: FunnelStage.EVALUATION,
    Intent.OBJECTION: FunnelStage.EVALUATION,
    # Support questions keep the lead engaged in evaluation
    Intent.SUPPORT: FunnelStage.EVALUATION,
    Intent.COMPLAINT: FunnelStage.EVALUATION,
    Intent.ORDERING: FunnelStage.DECISION,
    Intent.SHIPPING_COD: FunnelStage.DECISION,
    Intent.EARNING_OPPORTUNITY: FunnelStage.DECISION,
    Intent.READY_TO_BUY: FunnelStage.CLOSING,
    Intent.FOLLOW_UP: FunnelStage.FOLLOW_UP,
}

GOALS = {
    FunnelStage.CLOSING: "Get clear yes/no decision and move to activation.",
    FunnelStage.DECISION: "Address final objections and build urgency.",
    FunnelStage.EVALUATION: "Provide proof and build trust.",
    FunnelStage.INTEREST: "Build curiosity and qualify needs.",
}
DEFAULT_GOAL = "Move the lead one step forward in the funnel."


@dataclass(frozen=True)
class RankProgress:
    progress: float
    next_rank: str
    volume_needed: float


def rank_index(rank: Optional[str]) -> int:
    """Unknown ranks count as Starter."""
    try:
        return RANK_ORDER.index(rank)
    except ValueError:
        return 0


class FunnelStateMachine:
    """
    Three-step transition: intent suggests a stage, the forward-only rule
    accepts or rejects it, then temperature overrides apply.
    """

    def __init__(self, leader_rank: str | None = None, revival_after_hours: float | None = None):
        settings = get_settings()
        self.leader_rank = leader_rank or settings.leader_rank
        self.revival_after_hours = (
            revival_after_hours if revival_after_hours is not None else settings.revival_after_hours
        )

    @staticmethod
    def suggest_stage(intent: Intent) -> FunnelStage:
        return STAGE_BY_INTENT.get(intent, FunnelStage.AWARENESS)

    @staticmethod
    def advance(current: FunnelStage, suggested: FunnelStage) -> FunnelStage:
        """Forward-only move. Side-stages are entered from anywhere."""
        if is_side_stage(suggested):
            return suggested
        if is_side_stage(current):
            # A bare greeting does not pull a parked conversation back to the top
            return current if suggested == FunnelStage.AWARENESS else suggested
        if stage_rank(suggested) > stage_rank(current):
            return suggested
        return current

    def next(self, current: FunnelStage, intent: Intent, temperature: LeadTemperature) -> FunnelStage:
        stage = self.advance(current, self.suggest_stage(intent))

        if is_hot(temperature):
            stage = FunnelStage.CLOSING
        elif temperature == LeadTemperature.COLD and not is_side_stage(stage):
            stage = self._cold_clamp(current, stage)

        return stage

    @staticmethod
    def _cold_clamp(current: FunnelStage, stage: FunnelStage) -> FunnelStage:
        """Cold leads advance no further than interest, but never lose ground."""
        ceiling = FunnelStage.INTEREST
        if not is_side_stage(current) and stage_rank(current) > stage_rank(ceiling):
            ceiling = current
        return stage if stage_rank(stage) <= stage_rank(ceiling) else ceiling

    def check_revival(self, current: FunnelStage, hours_idle: float) -> FunnelStage:
        if current != FunnelStage.REVIVAL and hours_idle >= self.revival_after_hours:
            logger.info(f"Conversation idle {hours_idle:.1f}h, moving {current} -> revival")
            return FunnelStage.REVIVAL
        return current

    def is_leader(self, member_rank: Optional[str]) -> bool:
        return rank_index(member_rank) >= rank_index(self.leader_rank)

    def step(
        self,
        current: FunnelStage,
        intent: Intent,
        temperature: LeadTemperature,
        member_rank: Optional[str] = None,
    ) -> FunnelStep:
        """Rank-aware funnel decision: next stage plus persona, goal and actions."""
        suggested = self.suggest_stage(intent)
        stage = self.next(current, intent, temperature)
        leader = self.is_leader(member_rank)

        sequence_key = "_".join(
            [intent.value, stage.value, temperature.value, "leader" if leader else "member"]
        )

        if stage != current:
            logger.debug(f"Funnel: {current} -> {stage} (intent={intent}, temperature={temperature})")

        return FunnelStep(
            stage=stage,
            previous_stage=current,
            suggested_stage=suggested,
            sequence_key=sequence_key,
            persona=IntentClassifier.persona_for(intent, is_leader=leader),
            goal=GOALS.get(stage, DEFAULT_GOAL),
            guidance=self.guidance(stage, intent),
            recommended_actions=self.recommended_actions(stage, leader, temperature),
        )

    @staticmethod
    def guidance(stage: FunnelStage, intent: Intent) -> str:
        """One-line sales approach for the stage and intent."""
        if intent == Intent.READY_TO_BUY:
            return "CLOSE NOW: Confirm order, send payment link, walk through process"

        if stage == FunnelStage.AWARENESS:
            return "Warm greeting + quick value prop + qualifying question"
        if stage == FunnelStage.INTEREST:
            if intent == Intent.BENEFITS:
                return "List 3-5 benefits + social proof + ask if interested"
            return "Share key features + benefits + testimonial"
        if stage == FunnelStage.EVALUATION:
            if intent == Intent.PRICE:
                return "Share price + value justification + bundle offer + CTA"
            if intent == Intent.HESITATION:
                return "Empathize + address concern + create urgency"
            return "Provide proof + address objections + build trust"
        if stage == FunnelStage.DECISION:
            if intent == Intent.ORDERING:
                return "Clear steps + make it easy + reassure"
            if intent == Intent.SHIPPING_COD:
                return "Explain options + emphasize convenience"
            return "Final push: urgency + guarantee + clear CTA"
        if stage == FunnelStage.CLOSING:
            return "Confirm choice + celebrate decision + easy checkout"
        if stage == FunnelStage.FOLLOW_UP:
            return "Acknowledge + set expectation + leave door open"
        return "Build relationship + provide value"

    @staticmethod
    def recommended_actions(stage: FunnelStage, is_leader: bool, temperature: LeadTemperature) -> list[str]:
        actions = []

        if stage == FunnelStage.AWARENESS:
            actions += ["Share value-focused content", "Ask qualifying questions"]
            if is_leader:
                actions.append("Invite to team event or webinar")
        elif stage == FunnelStage.INTEREST:
            actions += [
                "Share success stories",
                "Provide product/opportunity overview",
                "Schedule discovery call",
            ]
        elif stage == FunnelStage.EVALUATION:
            actions += [
                "Share testimonials and proof",
                "Address specific objections",
                "Compare to alternatives",
            ]
            if is_leader:
                actions.append("Introduce upline mentor")
        elif stage == FunnelStage.DECISION:
            actions += [
                "Create urgency with limited-time offer",
                "Clarify investment and ROI",
                "Get commitment date",
            ]
        elif stage == FunnelStage.CLOSING:
            if is_hot(temperature):
                actions += [
                    "Send enrollment link NOW",
                    "Walk through sign-up process",
                    "Schedule onboarding call",
                ]
            else:
                actions += ["Address final concerns", "Offer trial or guarantee", "Set clear next step"]
        else:
            actions.append("Continue building relationship")

        return actions

    @staticmethod
    def next_rank(rank: str) -> str:
        """The rank above `rank`; unknown and top ranks stay put."""
        if rank not in RANK_ORDER or rank == RANK_ORDER[-1]:
            return rank
        return RANK_ORDER[RANK_ORDER.index(rank) + 1]

    @classmethod
    def rank_progress(
        cls,
        volume: float,
        rank: str,
        rank_rules: Optional[Mapping[str, float]] = None,
    ) -> RankProgress:
        """
        Progress toward the next rank.

        Args:
            volume: Current sales volume
            rank: Current rank
            rank_rules: Minimum volume per rank, e.g. {"Bronze": 1000, "Silver": 5000}
        """
        target = cls.next_rank(rank)
        min_volume = (rank_rules or {}).get(target)
        if target == rank or not min_volume:
            return RankProgress(progress=100.0, next_rank=rank, volume_needed=0)

        return RankProgress(
            progress=round(min(100.0, volume / min_volume * 100), 2),
            next_rank=target,
            volume_needed=max(0, min_volume - volume),
        )
