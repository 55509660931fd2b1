"""
Integration tests for the Conversation Evaluator.

Runs the full pipeline (classify, funnel, score, compose) over the bundled
rule and content packs. No mocks except where a failure is injected.
"""
import pytest
import datetime as dt
import random
from loguru import logger
from closer.core.conversation_evaluator import ConversationEvaluator, EvaluationResult
from closer.engines.lead_scorer import LeadScorer
from closer.models.session import SessionContext
from closer.models.vocabulary import (
    BuyingSignal,
    FunnelStage,
    Intent,
    LeadTemperature,
    ObjectionKind,
    Persona,
    ResponseStrategy,
    Urgency,
)
from closer.models.workspace import WorkspaceContext, WorkspaceSnapshot


@pytest.fixture
def records():
    captured = []
    handler_id = logger.add(lambda message: captured.append(message.record), level="DEBUG")
    yield captured
    logger.remove(handler_id)


class FailingScorer(LeadScorer):
    def compute(self, *args, **kwargs):
        raise RuntimeError("scorer exploded")


class TestAcceptanceScenarios:
    """End-to-end versions of the core behaviours."""

    def test_ready_to_buy_escalates(self, evaluator, fresh_session, tea_workspace):
        """Scenario A: an order message goes straight to order collection."""
        result = evaluator.evaluate_message(fresh_session, "order na po", tea_workspace)
        decision = result.decision

        assert decision.intent == Intent.READY_TO_BUY
        assert decision.signal == BuyingSignal.READY_TO_ORDER
        assert decision.branch == 1
        assert decision.strategy == ResponseStrategy.COLLECT_ORDER
        assert decision.urgency == Urgency.CRITICAL
        assert decision.should_escalate is True
        assert decision.next_step == "collect_order_details"
        assert decision.stage == FunnelStage.CLOSING
        assert decision.temperature == LeadTemperature.READY_TO_BUY

    def test_price_question_moves_forward(self, evaluator, fresh_session, tea_workspace):
        """Scenario B: awareness + price question lands in evaluation."""
        result = evaluator.evaluate_message(fresh_session, "Magkano po?", tea_workspace)
        decision = result.decision

        assert decision.previous_stage == FunnelStage.AWARENESS
        assert decision.stage == FunnelStage.EVALUATION
        assert decision.score == 38
        assert decision.temperature == LeadTemperature.WARM
        assert decision.branch == 2
        assert decision.strategy == ResponseStrategy.VALUE_FRAMING
        assert "Sleep Tea" in decision.message
        assert "₱1,500" in decision.message

    def test_greeting_never_regresses(self, evaluator):
        """Scenario C: a greeting at closing stays at closing."""
        session = SessionContext(
            conversation_id="conv-c",
            current_stage=FunnelStage.CLOSING,
            hours_since_last_reply=30,
        )

        decision = evaluator.evaluate_message(session, "Hi").decision

        assert decision.intent == Intent.GREETING
        assert decision.temperature == LeadTemperature.WARM
        assert decision.stage == FunnelStage.CLOSING
        assert decision.branch == 10

    def test_hot_lead_forced_to_closing(self, evaluator):
        """Scenario D: a hot lead at awareness is pulled into closing."""
        session = SessionContext(
            conversation_id="conv-d",
            current_stage=FunnelStage.AWARENESS,
            intent_history=[Intent.PRICE, Intent.ORDERING],
            signal_history=[BuyingSignal.PRICE_CHECK, BuyingSignal.COD_INTEREST, BuyingSignal.QUANTITY_INQUIRY],
            message_count=5,
        )

        result = evaluator.evaluate_message(session, "Hi")

        assert result.decision.stage == FunnelStage.CLOSING
        assert result.decision.stage_changed
        assert result.decision.temperature == LeadTemperature.READY_TO_BUY
        assert result.session_update.stage == FunnelStage.CLOSING

    @pytest.mark.parametrize("text,kind", [
        ("sobrang mahal naman", ObjectionKind.TOO_EXPENSIVE),
        ("mahal pala", ObjectionKind.PRICE),
    ])
    def test_price_objection(self, evaluator, fresh_session, text, kind):
        """Scenario E: intensity words separate too_expensive from price."""
        decision = evaluator.evaluate_message(fresh_session, text).decision

        assert decision.intent == Intent.HESITATION
        assert decision.objection == kind
        assert decision.objection_confidence >= 0.7
        assert decision.branch == 7
        assert decision.strategy == ResponseStrategy.OBJECTION_REBUTTAL

    def test_silence_penalty(self, evaluator):
        """Scenario F: 30 idle hours cost exactly 20 points."""
        recent = SessionContext(conversation_id="conv-f", current_stage=FunnelStage.EVALUATION)
        idle = recent.model_copy(update={"hours_since_last_reply": 30})

        fresh_score = evaluator.evaluate_message(recent, "Magkano po?").decision.score
        idle_score = evaluator.evaluate_message(idle, "Magkano po?").decision.score

        assert fresh_score == 38
        assert fresh_score - idle_score == 20


class TestPipelineBehaviour:
    """Cross-cutting guarantees of evaluate_message."""

    def test_returns_evaluation_result(self, evaluator, fresh_session):
        result = evaluator.evaluate_message(fresh_session, "Hi")

        assert isinstance(result, EvaluationResult)
        assert result.degraded is False
        assert result.duration_ms >= 0
        assert result.decision.conversation_id == "conv-test-001"

    def test_deterministic(self, evaluator, fresh_session, tea_workspace):
        first = evaluator.evaluate_message(fresh_session, "magkano po 3 boxes? cod ba?", tea_workspace)
        second = evaluator.evaluate_message(fresh_session, "magkano po 3 boxes? cod ba?", tea_workspace)

        assert first.decision == second.decision
        assert first.session_update == second.session_update

    def test_session_not_mutated(self, evaluator, fresh_session):
        before = fresh_session.model_dump()

        evaluator.evaluate_message(fresh_session, "order na po")

        assert fresh_session.model_dump() == before

    def test_session_update_extends_histories(self, evaluator, fresh_session):
        update = evaluator.evaluate_message(fresh_session, "magkano po 3 boxes? cod ba?").session_update

        assert update.intent_history == [Intent.PRICE]
        assert update.signal_history == [
            BuyingSignal.PRICE_CHECK,
            BuyingSignal.COD_INTEREST,
            BuyingSignal.QUANTITY_INQUIRY,
        ]
        assert update.message_count == 1

    def test_seeded_rng_is_repeatable(self, fresh_session):
        first = ConversationEvaluator(rng=random.Random(7)).evaluate_message(fresh_session, "Hi")
        second = ConversationEvaluator(rng=random.Random(7)).evaluate_message(fresh_session, "Hi")

        assert first.decision.branch == 14
        assert first.decision.message == second.decision.message

    def test_no_placeholders_left(self, evaluator, fresh_session, default_workspace):
        for text in ["Hi", "Magkano po?", "order na po", "sobrang mahal naman", "paano kumita?", "legit ba kayo?"]:
            decision = evaluator.evaluate_message(fresh_session, text, default_workspace).decision
            assert "${" not in decision.message

    def test_leader_gets_leader_persona(self, evaluator):
        session = SessionContext(conversation_id="conv-leader", member_rank="Gold")

        decision = evaluator.evaluate_message(session, "paano kumita?").decision

        assert decision.intent == Intent.EARNING_OPPORTUNITY
        assert decision.branch == 8
        assert decision.persona == Persona.MLM_LEADER

    def test_long_idle_enters_revival(self, evaluator):
        session = SessionContext(
            conversation_id="conv-idle",
            current_stage=FunnelStage.INTEREST,
            hours_since_last_reply=200,
        )

        decision = evaluator.evaluate_message(session, "Hi").decision

        assert decision.previous_stage == FunnelStage.INTEREST
        assert decision.stage == FunnelStage.REVIVAL
        assert decision.branch == 11

    def test_logs_stage_transition(self, evaluator, fresh_session, records):
        evaluator.evaluate_message(fresh_session, "Magkano po?")

        events = [r for r in records if r["extra"].get("event_type") == "stage_transition"]
        assert len(events) == 1
        assert events[0]["extra"]["to_stage"] == FunnelStage.EVALUATION

    def test_logs_escalation(self, evaluator, fresh_session, records):
        evaluator.evaluate_message(fresh_session, "order na po")

        assert any(r["extra"].get("event_type") == "escalation" for r in records)

    def test_engine_logs_carry_conversation_id(self, evaluator, fresh_session, records):
        evaluator.evaluate_message(fresh_session, "Magkano po?")

        intent_lines = [r for r in records if r["message"].startswith("Intent:")]
        assert intent_lines
        assert all(r["extra"]["conversation_id"] == "conv-test-001" for r in intent_lines)


class TestMalformedInput:
    """Bad input degrades gracefully instead of raising."""

    @pytest.mark.parametrize("text", [None, "", "   "])
    def test_empty_text(self, evaluator, fresh_session, text):
        result = evaluator.evaluate_message(fresh_session, text)

        assert result.degraded is False
        assert result.decision.intent == Intent.DEFAULT
        assert result.decision.signals == []
        assert result.decision.message.strip()

    def test_oversized_text_truncated(self, evaluator, fresh_session):
        result = evaluator.evaluate_message(fresh_session, "Magkano po? " + "x" * 10000)

        assert result.decision.intent == Intent.PRICE

    def test_session_as_dict_with_garbage(self, evaluator):
        session = {
            "conversation_id": "",
            "current_stage": "nowhere",
            "intent_history": ["bogus", "price"],
            "signal_history": "price_check",
            "message_count": "many",
            "hours_since_last_reply": -3,
        }

        result = evaluator.evaluate_message(session, "Hi")

        assert result.degraded is False
        assert result.decision.conversation_id == "anonymous"
        assert result.decision.previous_stage == FunnelStage.AWARENESS
        assert result.session_update.intent_history == [Intent.PRICE, Intent.GREETING]
        assert result.session_update.message_count == 1

    def test_missing_session(self, evaluator):
        result = evaluator.evaluate_message(None, "Hi")

        assert result.decision.conversation_id == "anonymous"

    def test_workspace_as_dict(self, evaluator, fresh_session):
        decision = evaluator.evaluate_message(
            fresh_session, "Magkano po?", {"product_name": "Slim Coffee", "price": 999, "has_cod": None}
        ).decision

        assert "Slim Coffee" in decision.message
        assert "₱999" in decision.message

    def test_expired_snapshot_still_used(self, evaluator, fresh_session, tea_workspace):
        snapshot = WorkspaceSnapshot(
            workspace=tea_workspace,
            fetched_at=dt.datetime(2020, 1, 1, tzinfo=dt.UTC),
            ttl_seconds=1,
        )

        decision = evaluator.evaluate_message(fresh_session, "Magkano po?", snapshot).decision

        assert "Sleep Tea" in decision.message

    def test_engine_failure_degrades(self, fresh_session, tea_workspace):
        evaluator = ConversationEvaluator(scorer=FailingScorer())

        result = evaluator.evaluate_message(fresh_session, "order na po", tea_workspace)

        assert result.degraded is True
        assert result.decision.branch == 0
        assert result.decision.should_escalate is False
        assert result.decision.stage == FunnelStage.AWARENESS
        assert result.session_update.message_count == 1
        assert "${" not in result.decision.message

    def test_workspace_with_extra_keys_still_decides(self, evaluator, fresh_session):
        """Columns from the caller's store are ignored, not fatal."""
        result = evaluator.evaluate_message(
            fresh_session, "order na po", {"product_name": "Sleep Tea", "price": 1500, "workspace_id": "w-1"}
        )

        assert result.degraded is False
        assert result.decision.strategy == ResponseStrategy.COLLECT_ORDER
        assert result.decision.urgency == Urgency.CRITICAL
        assert result.decision.should_escalate is True

    def test_workspace_with_bad_values_still_decides(self, evaluator, fresh_session):
        result = evaluator.evaluate_message(fresh_session, "Magkano po?", {"price": 999, "has_cod": "maybe"})

        assert result.degraded is False
        assert result.decision.branch == 2
        assert "₱999" in result.decision.message

    def test_fallback_keeps_session_stage(self):
        evaluator = ConversationEvaluator(scorer=FailingScorer())
        session = SessionContext(conversation_id="conv-closing", current_stage=FunnelStage.CLOSING)

        result = evaluator.evaluate_message(session, "Hi")

        assert result.degraded is True
        assert result.decision.previous_stage == FunnelStage.CLOSING
        assert result.session_update.stage == FunnelStage.CLOSING


class TestEvaluateConversation:
    """Replaying a conversation message by message."""

    def test_replay_progresses_through_funnel(self, evaluator, tea_workspace):
        results = evaluator.evaluate_conversation(
            ["Hi", "Magkano po?", "order na po"],
            session={"conversation_id": "conv-replay"},
            workspace=tea_workspace,
        )

        stages = [r.decision.stage for r in results]
        assert stages == [FunnelStage.AWARENESS, FunnelStage.EVALUATION, FunnelStage.CLOSING]
        assert [r.session_update.message_count for r in results] == [1, 2, 3]
        assert results[-1].decision.branch == 1
        assert results[-1].decision.score == 100
        assert results[-1].session_update.intent_history == [
            Intent.GREETING,
            Intent.PRICE,
            Intent.READY_TO_BUY,
        ]

    def test_empty_replay(self, evaluator):
        assert evaluator.evaluate_conversation([]) == []
