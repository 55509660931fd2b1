"""
Fallback Decisions for Pipeline Degradation

Predefined safe outputs when the evaluation pipeline fails unexpectedly.
These keep the conversation alive without making assumptions about the lead.
"""
from typing import Optional
from loguru import logger
from closer.exceptions import RulePackError
from closer.models.analysis import LeadScore
from closer.models.decision import ConversationDecision
from closer.models.session import SessionContext, SessionUpdate
from closer.models.vocabulary import (
    BuyingSignal,
    FunnelStage,
    Intent,
    LeadTemperature,
    Persona,
    ResponseStrategy,
    Urgency,
)
from closer.sequences import get_sequence_library

FALLBACK_MESSAGE = "Hello po! 😊 Salamat sa message n'yo. Paano ko po kayo matutulungan today?"


def get_fallback_score() -> LeadScore:
    """Neutral score: cold, nothing inferred."""
    return LeadScore(
        score=0,
        raw_score=0,
        temperature=LeadTemperature.COLD,
        breakdown={},
        reasons=["Scoring unavailable - service degraded"],
    )


def get_fallback_decision(
    conversation_id: str = "anonymous",
    product_name: Optional[str] = None,
    previous_stage: FunnelStage = FunnelStage.AWARENESS,
) -> ConversationDecision:
    """
    Safe decision when the pipeline fails.

    Awareness stage, low urgency, no escalation: a gentle opener that won't
    push an unqualified lead into a closing script. previous_stage records
    where the session actually was.
    """
    try:
        found = get_sequence_library().lookup(FunnelStage.AWARENESS)
        message = get_sequence_library().render(
            found.text, product_name=product_name or "our product", price_label="Contact us"
        )
        template_ref = found.ref
    except RulePackError as e:
        logger.error(f"Content packs unavailable for fallback decision: {e}")
        message, template_ref = FALLBACK_MESSAGE, "fallback"

    return ConversationDecision(
        conversation_id=conversation_id,
        strategy=ResponseStrategy.STAGE_SEQUENCE,
        urgency=Urgency.LOW,
        next_step="continue_conversation",
        should_escalate=False,
        message=message.strip() or FALLBACK_MESSAGE,
        template_ref=template_ref,
        branch=0,
        stage=FunnelStage.AWARENESS,
        previous_stage=previous_stage,
        temperature=LeadTemperature.COLD,
        score=0,
        intent=Intent.DEFAULT,
        intent_confidence=0.0,
        signal=BuyingSignal.NONE,
        signals=[],
        persona=Persona.DEFAULT,
        goal="Maintain rapport while the decision engine recovers.",
        recommended_actions=["Continue building relationship"],
    )


def get_fallback_session_update(session: SessionContext) -> SessionUpdate:
    """
    Leave the stored session as it was, apart from counting the message.
    Histories are not extended with guesses.
    """
    return SessionUpdate(
        conversation_id=session.conversation_id,
        stage=session.current_stage,
        score=0,
        temperature=LeadTemperature.COLD,
        intent_history=list(session.intent_history),
        signal_history=list(session.signal_history),
        message_count=session.message_count + 1,
    )
