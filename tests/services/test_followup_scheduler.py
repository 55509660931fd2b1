"""
Tests for the Follow-up Planner

Validates re-engagement timing, urgency, and message selection.
"""

import pytest
import datetime as dt
from closer.models.vocabulary import BuyingSignal, Channel, FunnelStage, LeadTemperature, Urgency
from closer.sequences import get_sequence_library
from closer.services.followup_scheduler import (
    FollowUpPlan,
    FollowUpPlanner,
    get_followup_planner,
)


class TestFollowUpPlanner:
    """Tests for FollowUpPlanner class."""

    @pytest.fixture
    def planner(self):
        return FollowUpPlanner()

    @pytest.fixture
    def last_follow_up(self):
        return dt.datetime(2025, 12, 1, 9, 0, tzinfo=dt.UTC)

    # ===========================================
    # Follow-up Detection
    # ===========================================

    @pytest.mark.parametrize("hours,stage,temperature,expected", [
        (0.5, FunnelStage.AWARENESS, LeadTemperature.READY_TO_BUY, True),
        (0.4, FunnelStage.AWARENESS, LeadTemperature.READY_TO_BUY, False),
        (2, FunnelStage.AWARENESS, LeadTemperature.HOT, True),
        (1.5, FunnelStage.CLOSING, LeadTemperature.HOT, False),
        (1, FunnelStage.CLOSING, LeadTemperature.WARM, True),
        (5, FunnelStage.EVALUATION, LeadTemperature.WARM, False),
        (6, FunnelStage.EVALUATION, LeadTemperature.WARM, True),
        (23, FunnelStage.AWARENESS, LeadTemperature.COLD, False),
        (24, FunnelStage.AWARENESS, LeadTemperature.COLD, True),
        (100, FunnelStage.REVIVAL, LeadTemperature.COLD, False),
        (168, FunnelStage.REVIVAL, LeadTemperature.COLD, True),
    ])
    def test_should_follow_up(self, planner, hours, stage, temperature, expected):
        assert planner.should_follow_up(hours, stage, temperature) is expected

    def test_too_soon(self, planner):
        """Recently active leads get no follow-up."""
        plan = planner.plan(FunnelStage.AWARENESS, LeadTemperature.COLD, hours_elapsed=1)
        assert plan == FollowUpPlan(
            should_follow_up=False,
            urgency=Urgency.LOW,
            delay_hours=0,
            reason="Too soon to follow up",
        )

    # ===========================================
    # Urgency
    # ===========================================

    def test_abandoned_order_is_critical(self, planner):
        plan = planner.plan(
            FunnelStage.CLOSING, LeadTemperature.READY_TO_BUY, hours_elapsed=1, has_order_intent=True
        )
        assert plan.should_follow_up
        assert plan.urgency == Urgency.CRITICAL
        assert plan.delay_hours == 0.5

    def test_hot_lead_is_high(self, planner):
        plan = planner.plan(FunnelStage.EVALUATION, LeadTemperature.HOT, hours_elapsed=3)
        assert plan.urgency == Urgency.HIGH
        assert plan.delay_hours == 2

    def test_warm_decision_is_medium(self, planner):
        plan = planner.plan(FunnelStage.DECISION, LeadTemperature.WARM, hours_elapsed=8)
        assert plan.urgency == Urgency.MEDIUM
        assert plan.delay_hours == 6

    def test_cold_early_stage_is_low(self, planner):
        plan = planner.plan(FunnelStage.AWARENESS, LeadTemperature.COLD, hours_elapsed=30)
        assert plan.urgency == Urgency.LOW
        assert plan.delay_hours == 24

    def test_cod_signal_raises_urgency(self, planner):
        plan = planner.plan(
            FunnelStage.DECISION, LeadTemperature.WARM, hours_elapsed=8, signals=[BuyingSignal.COD_INTEREST]
        )
        assert plan.urgency == Urgency.HIGH

    def test_price_signal_raises_low_to_medium(self, planner):
        plan = planner.plan(
            FunnelStage.AWARENESS, LeadTemperature.COLD, hours_elapsed=30, signals=[BuyingSignal.PRICE_CHECK]
        )
        assert plan.urgency == Urgency.MEDIUM

    def test_signal_does_not_raise_high(self, planner):
        plan = planner.plan(
            FunnelStage.EVALUATION, LeadTemperature.HOT, hours_elapsed=3, signals=[BuyingSignal.PRICE_CHECK]
        )
        assert plan.urgency == Urgency.HIGH

    def test_plan_message_from_stage_sequence(self, planner):
        plan = planner.plan(FunnelStage.DECISION, LeadTemperature.WARM, hours_elapsed=8)
        assert plan.template_ref == "funnel/decision#0"
        assert plan.message == get_sequence_library().get_template(FunnelStage.DECISION)

    # ===========================================
    # Sequences & Message Selection
    # ===========================================

    @pytest.mark.parametrize("temperature,delays", [
        (LeadTemperature.HOT, [1, 6, 24]),
        (LeadTemperature.READY_TO_BUY, [1, 6, 24]),
        (LeadTemperature.WARM, [6, 24, 72]),
        (LeadTemperature.COLD, [24, 72, 168]),
    ])
    def test_sequence_timings(self, planner, temperature, delays):
        steps = planner.sequence(FunnelStage.INTEREST, temperature)
        assert [step.delay_hours for step in steps] == delays

    def test_sequence_cycles_variants(self, planner):
        steps = planner.sequence(FunnelStage.INTEREST, LeadTemperature.WARM)
        assert [step.template_ref for step in steps] == [
            "funnel/interest#0",
            "funnel/interest#1",
            "funnel/interest#2",
        ]

    def test_select_message_skips_sent(self, planner):
        variants = get_sequence_library().variants(FunnelStage.EVALUATION)
        assert planner.select_message(FunnelStage.EVALUATION, 1) == variants[0]
        assert planner.select_message(FunnelStage.EVALUATION, 2, previous=[variants[0]]) == variants[1]

    def test_select_message_rotates_when_exhausted(self, planner):
        variants = get_sequence_library().variants(FunnelStage.EVALUATION)
        assert planner.select_message(FunnelStage.EVALUATION, 4, previous=variants) == variants[4 % len(variants)]

    # ===========================================
    # Timing & Channel
    # ===========================================

    def test_next_follow_up_first_attempt(self, planner, last_follow_up):
        assert planner.next_follow_up_time(last_follow_up, LeadTemperature.WARM, 1) == (
            last_follow_up + dt.timedelta(hours=6)
        )

    def test_next_follow_up_backoff(self, planner, last_follow_up):
        """6h * 1.5^2 = 13.5h on the third attempt."""
        assert planner.next_follow_up_time(last_follow_up, LeadTemperature.WARM, 3) == (
            last_follow_up + dt.timedelta(hours=13.5)
        )

    def test_next_follow_up_capped(self, planner, last_follow_up):
        assert planner.next_follow_up_time(last_follow_up, LeadTemperature.COLD, 10) == (
            last_follow_up + dt.timedelta(hours=168)
        )

    @pytest.mark.parametrize("stage,temperature,count,channel", [
        (FunnelStage.AWARENESS, LeadTemperature.HOT, 1, Channel.MESSENGER),
        (FunnelStage.INTEREST, LeadTemperature.WARM, 2, Channel.MESSENGER),
        (FunnelStage.INTEREST, LeadTemperature.WARM, 3, Channel.WEB),
        (FunnelStage.AWARENESS, LeadTemperature.COLD, 1, Channel.EMAIL),
        (FunnelStage.DECISION, LeadTemperature.COLD, 1, Channel.MESSENGER),
    ])
    def test_optimal_channel(self, stage, temperature, count, channel):
        assert FollowUpPlanner.optimal_channel(stage, temperature, count) == channel


def test_planner_singleton():
    assert get_followup_planner() is get_followup_planner()
