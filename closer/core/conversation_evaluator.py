"""
Conversation Evaluator
The single entry point that turns one inbound message into a ConversationDecision.

Architecture:
    Text → {IntentClassifier, BuyingSignalDetector, ObjectionDetector}
         → FunnelStateMachine → LeadScorer → ResponseComposer → ConversationDecision
"""
import random
import time
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Union
from loguru import logger
from closer.config import get_settings
from closer.engines.buying_signals import BuyingSignalDetector
from closer.engines.closing import ClosingContext, ResponseComposer
from closer.engines.funnel import FunnelStateMachine
from closer.engines.intent_classifier import IntentClassifier
from closer.engines.lead_scorer import LeadScorer
from closer.engines.objections import ObjectionDetector
from closer.models.decision import ConversationDecision
from closer.models.session import SessionContext, SessionUpdate
from closer.models.vocabulary import BuyingSignal, ObjectionKind
from closer.models.workspace import WorkspaceContext, WorkspaceSnapshot
from closer.utils.fallback_responses import get_fallback_decision, get_fallback_session_update
from closer.utils.observability import log_business_event, log_engine_execution

WorkspaceInput = Union[WorkspaceContext, WorkspaceSnapshot, Mapping[str, Any], None]
SessionInput = Union[SessionContext, Mapping[str, Any], None]


@dataclass
class EvaluationResult:
    """
    Everything produced for one inbound message.
    The caller persists session_update and hands decision to generation.
    """
    decision: ConversationDecision
    session_update: SessionUpdate

    # Metadata
    duration_ms: float
    degraded: bool = False


class ConversationEvaluator:
    """
    Runs the decision pipeline for one message at a time.

    Responsibilities:
    1. Repair malformed session and workspace input
    2. Run the classifiers, funnel, scorer and composer in order
    3. Return the decision plus the session state to persist
    4. Degrade to a safe fallback decision instead of raising

    Holds no per-conversation state: one instance can serve any number of
    conversations concurrently. Callers must apply session updates for a
    conversation in message order.

    Usage:
        >>> evaluator = ConversationEvaluator()
        >>> result = evaluator.evaluate_message(
        ...     session=SessionContext(conversation_id="conv-1"),
        ...     text="Magkano po?",
        ...     workspace=WorkspaceContext(product_name="Sleep Tea", price=1500),
        ... )
        >>> result.decision.strategy
        <ResponseStrategy.VALUE_FRAMING: 'value_framing'>
    """

    def __init__(
        self,
        intent_classifier: IntentClassifier | None = None,
        signal_detector: BuyingSignalDetector | None = None,
        objection_detector: ObjectionDetector | None = None,
        funnel: FunnelStateMachine | None = None,
        scorer: LeadScorer | None = None,
        composer: ResponseComposer | None = None,
        rng: random.Random | None = None,
    ):
        """
        Initialize the evaluator with engine instances.

        Args:
            intent_classifier: IntentClassifier instance (creates new if None)
            signal_detector: BuyingSignalDetector instance (creates new if None)
            objection_detector: ObjectionDetector instance (creates new if None)
            funnel: FunnelStateMachine instance (creates new if None)
            scorer: LeadScorer instance (creates new if None)
            composer: ResponseComposer instance (creates new if None)
            rng: Seeded generator for template variation; without one every
                decision uses the first template variant
        """
        # Allow dependency injection for testing
        self.intent_classifier = intent_classifier or IntentClassifier()
        self.signal_detector = signal_detector or BuyingSignalDetector()
        self.objection_detector = objection_detector or ObjectionDetector()
        self.funnel = funnel or FunnelStateMachine()
        self.scorer = scorer or LeadScorer()
        self.composer = composer or ResponseComposer()
        self.rng = rng

        self.max_message_length = get_settings().max_message_length

        logger.info("Conversation Evaluator initialized")

    def normalize_text(self, text: Optional[str]) -> str:
        return (text or "").strip()[: self.max_message_length]

    @staticmethod
    def resolve_session(session: SessionInput) -> SessionContext:
        if session is None:
            return SessionContext()
        if isinstance(session, SessionContext):
            return session
        return SessionContext.model_validate(dict(session))

    @staticmethod
    def resolve_workspace(workspace: WorkspaceInput) -> WorkspaceContext:
        """
        Unwrap snapshots; an expired snapshot is still used, but logged.
        Mappings are read leniently, see WorkspaceContext.from_mapping.
        """
        if workspace is None:
            return WorkspaceContext()
        if isinstance(workspace, WorkspaceSnapshot):
            if workspace.is_expired():
                logger.warning(
                    f"Workspace snapshot expired at {workspace.expires_at.isoformat()}, "
                    f"using stale configuration"
                )
            return workspace.workspace
        if isinstance(workspace, WorkspaceContext):
            return workspace
        return WorkspaceContext.from_mapping(workspace)

    def evaluate_message(
        self,
        session: SessionInput,
        text: Optional[str],
        workspace: WorkspaceInput = None,
    ) -> EvaluationResult:
        """
        Evaluate one inbound message.

        Args:
            session: The conversation state before this message
            text: The inbound message text
            workspace: Product and pricing configuration, or a snapshot of it

        Returns:
            EvaluationResult; never raises for content reasons
        """
        start_time = time.time()

        context: SessionContext | None = None
        ws: WorkspaceContext | None = None

        try:
            context = self.resolve_session(session)
            ws = self.resolve_workspace(workspace)
            # Engine log lines carry the conversation they belong to
            with logger.contextualize(conversation_id=context.conversation_id):
                decision, update = self._evaluate(context, self.normalize_text(text), ws)
        except Exception as e:
            context = context or SessionContext()
            logger.exception(
                f"❌ Evaluation failed for {context.conversation_id}, using fallback decision: {e}"
            )
            duration_ms = (time.time() - start_time) * 1000
            return EvaluationResult(
                decision=get_fallback_decision(
                    context.conversation_id,
                    product_name=ws.product_name if ws else None,
                    previous_stage=context.current_stage,
                ),
                session_update=get_fallback_session_update(context),
                duration_ms=duration_ms,
                degraded=True,
            )

        duration_ms = (time.time() - start_time) * 1000

        log_engine_execution(
            engine="ConversationEvaluator",
            conversation_id=context.conversation_id,
            action="evaluate",
            duration_ms=duration_ms,
            intent=decision.intent,
            stage=decision.stage,
            temperature=decision.temperature,
            strategy=decision.strategy,
        )

        if decision.stage_changed:
            log_business_event(
                "stage_transition",
                context.conversation_id,
                from_stage=decision.previous_stage,
                to_stage=decision.stage,
                score=decision.score,
            )
        if decision.should_escalate:
            log_business_event(
                "escalation",
                context.conversation_id,
                strategy=decision.strategy,
                next_step=decision.next_step,
            )

        return EvaluationResult(decision=decision, session_update=update, duration_ms=duration_ms)

    def _evaluate(
        self,
        session: SessionContext,
        text: str,
        workspace: WorkspaceContext,
    ) -> tuple[ConversationDecision, SessionUpdate]:
        previous_intent = session.intent_history[-1] if session.intent_history else None

        # Step 1: Classify (independent, pure)
        intent = self.intent_classifier.classify_with_context(text, previous_intent=previous_intent)
        signals = self.signal_detector.detect_all_signals(text)
        primary_signal = signals[0] if signals else BuyingSignal.NONE

        intent_history = [*session.intent_history, intent.intent]
        signal_history = [*session.signal_history, *signals]
        message_count = session.message_count + 1
        hours = session.hours_since_last_reply
        member_rank = session.member_rank or workspace.member_rank

        # Step 2: Park long-idle conversations before anything else
        current = self.funnel.check_revival(session.current_stage, hours)

        # Step 3: Provisional temperature at the current stage drives the funnel
        provisional = self.scorer.compute(intent_history, signal_history, current, message_count, hours)
        step = self.funnel.step(current, intent.intent, provisional.temperature, member_rank)

        # Step 4: Final score at the new stage
        score = self.scorer.compute(intent_history, signal_history, step.stage, message_count, hours)

        objection = self.objection_detector.with_analysis(
            text, score.temperature, product_name=workspace.product_name
        )

        # Step 5: Compose
        composed = self.composer.compose(
            ClosingContext(
                intent=intent.intent,
                signals=signals,
                stage=step.stage,
                temperature=score.temperature,
                objection=objection.kind,
                rebuttal=objection.rebuttal if objection.kind != ObjectionKind.NONE else None,
                workspace=workspace,
            ),
            rng=self.rng,
        )

        decision = ConversationDecision(
            conversation_id=session.conversation_id,
            strategy=composed.strategy,
            urgency=composed.urgency,
            next_step=composed.next_step,
            should_escalate=composed.should_escalate,
            message=composed.message,
            template_ref=composed.template_ref,
            branch=composed.branch,
            stage=step.stage,
            previous_stage=session.current_stage,
            temperature=score.temperature,
            score=score.score,
            intent=intent.intent,
            intent_confidence=intent.confidence,
            signal=primary_signal,
            signals=signals,
            objection=objection.kind,
            objection_confidence=objection.confidence,
            objection_strategy=objection.strategy,
            persona=step.persona,
            goal=step.goal,
            recommended_actions=step.recommended_actions,
        )

        update = SessionUpdate(
            conversation_id=session.conversation_id,
            stage=step.stage,
            score=score.score,
            temperature=score.temperature,
            intent_history=intent_history,
            signal_history=signal_history,
            message_count=message_count,
        )

        logger.debug(f"Score breakdown for {session.conversation_id}: {score.breakdown}")
        return decision, update

    def evaluate_conversation(
        self,
        texts: Iterable[str],
        session: SessionInput = None,
        workspace: WorkspaceInput = None,
    ) -> list[EvaluationResult]:
        """
        Replay a sequence of messages for one conversation, applying each
        session update before the next message. Useful for tests and backfills.
        """
        current = self.resolve_session(session)
        results = []

        for text in texts:
            result = self.evaluate_message(current, text, workspace)
            results.append(result)
            current = result.session_update.apply_to(current)

        return results
