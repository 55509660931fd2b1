"""
Tests for Session Context

Malformed session input must be repaired with safe defaults, never rejected.
"""

import pytest
from pydantic import ValidationError
from closer.models.session import SessionContext, SessionUpdate
from closer.models.vocabulary import BuyingSignal, FunnelStage, Intent, LeadTemperature


class TestSessionDefaults:
    """Tests for an empty session."""

    def test_empty_session(self):
        """A bare session starts at awareness with empty histories."""
        session = SessionContext()
        assert session.conversation_id == "anonymous"
        assert session.current_stage == FunnelStage.AWARENESS
        assert session.intent_history == []
        assert session.signal_history == []
        assert session.message_count == 0
        assert session.hours_since_last_reply == 0.0
        assert session.member_rank is None

    def test_session_is_frozen(self):
        """The core never mutates caller-owned state."""
        session = SessionContext()
        with pytest.raises(ValidationError):
            session.current_stage = FunnelStage.CLOSING


class TestSessionRepair:
    """Tests for malformed input defended by validators."""

    @pytest.mark.parametrize("hours", [None, -5, "not a number", float("nan")])
    def test_bad_elapsed_time_means_just_replied(self, hours):
        session = SessionContext(hours_since_last_reply=hours)
        assert session.hours_since_last_reply == 0.0

    def test_valid_elapsed_time_kept(self):
        session = SessionContext(hours_since_last_reply="30")
        assert session.hours_since_last_reply == 30.0

    def test_missing_histories_are_empty(self):
        session = SessionContext(intent_history=None, signal_history=None)
        assert session.intent_history == []
        assert session.signal_history == []

    def test_unknown_tags_dropped(self):
        """Unknown tags are dropped; known ones keep their order."""
        session = SessionContext(
            intent_history=["greeting", "teleport", "price"],
            signal_history=["price_check", "mystery", "cod_interest"],
        )
        assert session.intent_history == [Intent.GREETING, Intent.PRICE]
        assert session.signal_history == [BuyingSignal.PRICE_CHECK, BuyingSignal.COD_INTEREST]

    @pytest.mark.parametrize("stage", [None, "negotiation", ""])
    def test_unknown_stage_becomes_awareness(self, stage):
        session = SessionContext(current_stage=stage)
        assert session.current_stage == FunnelStage.AWARENESS

    def test_known_stage_string_accepted(self):
        session = SessionContext(current_stage="decision")
        assert session.current_stage == FunnelStage.DECISION

    def test_negative_message_count(self):
        assert SessionContext(message_count=-3).message_count == 0

    def test_blank_conversation_id(self):
        assert SessionContext(conversation_id="  ").conversation_id == "anonymous"


class TestSessionUpdate:
    """Tests for applying a decision's update to the next session."""

    def test_apply_to_resets_clock(self):
        """Applying an update carries the new state and resets elapsed time."""
        session = SessionContext(
            conversation_id="conv-1",
            hours_since_last_reply=30,
            member_rank="Gold",
        )
        update = SessionUpdate(
            conversation_id="conv-1",
            stage=FunnelStage.EVALUATION,
            score=38,
            temperature=LeadTemperature.WARM,
            intent_history=[Intent.PRICE],
            signal_history=[BuyingSignal.PRICE_CHECK],
            message_count=1,
        )

        next_session = update.apply_to(session)

        assert next_session.current_stage == FunnelStage.EVALUATION
        assert next_session.intent_history == [Intent.PRICE]
        assert next_session.signal_history == [BuyingSignal.PRICE_CHECK]
        assert next_session.message_count == 1
        assert next_session.hours_since_last_reply == 0.0
        assert next_session.member_rank == "Gold"
        # Original untouched
        assert session.current_stage == FunnelStage.AWARENESS

    def test_score_bounds_enforced(self):
        with pytest.raises(ValidationError):
            SessionUpdate(
                conversation_id="conv-1",
                stage=FunnelStage.AWARENESS,
                score=101,
                temperature=LeadTemperature.COLD,
                intent_history=[],
                signal_history=[],
                message_count=0,
            )
