"""
Response Composer (closing engine)

A priority-ordered decision table. Rows are evaluated top to bottom and
the first row whose guard holds produces the response; later rows are
never consulted. Reordering rows changes observable output.
"""
import random
from dataclasses import dataclass
from typing import Callable, List, Optional, Union
from pydantic import BaseModel, ConfigDict, Field
from closer.engines.objections import GENERIC_REBUTTAL, rebuttal_index
from closer.models.analysis import ComposedResponse
from closer.models.vocabulary import (
    BuyingSignal,
    FunnelStage,
    Intent,
    LeadTemperature,
    ObjectionKind,
    ResponseStrategy,
    Urgency,
    is_side_stage,
)
from closer.models.workspace import WorkspaceContext
from closer.sequences import SequenceLibrary, get_sequence_library
from closer.sequences.library import CLOSING


class ClosingContext(BaseModel):
    """Everything the decision table reads for one message."""
    model_config = ConfigDict(frozen=True)

    intent: Intent
    signals: List[BuyingSignal] = Field(default_factory=list)
    stage: FunnelStage = FunnelStage.AWARENESS
    temperature: LeadTemperature = LeadTemperature.COLD
    objection: ObjectionKind = ObjectionKind.NONE
    rebuttal: Optional[str] = Field(None, description="Pre-selected rebuttal text; chosen here when omitted")
    workspace: WorkspaceContext = Field(default_factory=WorkspaceContext)

    def has(self, *signals: BuyingSignal) -> bool:
        return any(signal in self.signals for signal in signals)


@dataclass(frozen=True)
class Branch:
    """One row of the decision table."""
    number: int
    strategy: ResponseStrategy
    urgency: Urgency
    next_step: str
    should_escalate: bool
    when: Callable[[ClosingContext], bool]
    # Template name, or a callable choosing one from the context
    template: Union[str, Callable[[ClosingContext], str], None]


DECISION_TABLE: tuple[Branch, ...] = (
    Branch(
        1, ResponseStrategy.COLLECT_ORDER, Urgency.CRITICAL, "collect_order_details", True,
        lambda c: c.intent == Intent.READY_TO_BUY or c.has(BuyingSignal.READY_TO_ORDER),
        "collect_order",
    ),
    Branch(
        2, ResponseStrategy.VALUE_FRAMING, Urgency.MEDIUM, "present_value_and_close", False,
        lambda c: c.intent == Intent.PRICE or c.has(BuyingSignal.PRICE_CHECK),
        "value_framing",
    ),
    Branch(
        3, ResponseStrategy.DELIVERY_DETAILS, Urgency.HIGH, "collect_delivery_details", True,
        lambda c: c.intent == Intent.SHIPPING_COD or c.has(BuyingSignal.COD_INTEREST, BuyingSignal.DELIVERY_CHECK),
        lambda c: "delivery_details.cod" if c.workspace.has_cod else "delivery_details.prepaid",
    ),
    Branch(
        4, ResponseStrategy.BUNDLE_PRESENTATION, Urgency.HIGH, "present_bundles_and_close", True,
        lambda c: c.has(BuyingSignal.QUANTITY_INQUIRY),
        "bundle_presentation",
    ),
    Branch(
        5, ResponseStrategy.PAYMENT_EXPLANATION, Urgency.HIGH, "explain_payment_and_close", True,
        lambda c: c.has(BuyingSignal.PAYMENT_OPTIONS),
        "payment_explanation",
    ),
    Branch(
        6, ResponseStrategy.FAST_TRACK, Urgency.CRITICAL, "fast_track_order", True,
        lambda c: c.has(BuyingSignal.URGENCY),
        "fast_track",
    ),
    Branch(
        7, ResponseStrategy.OBJECTION_REBUTTAL, Urgency.MEDIUM, "overcome_objection", False,
        lambda c: c.intent in (Intent.OBJECTION, Intent.HESITATION),
        "objection_rebuttal",
    ),
    Branch(
        8, ResponseStrategy.BUSINESS_PACKAGE, Urgency.HIGH, "present_business_package", False,
        lambda c: c.intent == Intent.EARNING_OPPORTUNITY,
        "business_package",
    ),
    Branch(
        9, ResponseStrategy.DECISION_PUSH, Urgency.HIGH, "get_decision", True,
        lambda c: c.stage == FunnelStage.DECISION,
        "decision_push",
    ),
    Branch(
        10, ResponseStrategy.DIRECT_CTA, Urgency.CRITICAL, "process_order", True,
        lambda c: c.stage == FunnelStage.CLOSING,
        "direct_cta",
    ),
    Branch(
        11, ResponseStrategy.REVIVAL, Urgency.LOW, "revive_conversation", False,
        lambda c: is_side_stage(c.stage),
        "revival",
    ),
    Branch(
        12, ResponseStrategy.TRUST_BUILDING, Urgency.MEDIUM, "build_trust", False,
        lambda c: c.has(BuyingSignal.VALIDATION),
        "trust_building",
    ),
    Branch(
        13, ResponseStrategy.PROMO, Urgency.HIGH, "present_promo", False,
        lambda c: c.has(BuyingSignal.PROMO_INTEREST),
        lambda c: "promo.active" if c.workspace.has_promo else "promo.bundle",
    ),
    # Always matches; the message comes from the funnel sequence for the stage
    Branch(
        14, ResponseStrategy.STAGE_SEQUENCE, Urgency.LOW, "continue_conversation", False,
        lambda c: True,
        None,
    ),
)


class ResponseComposer:
    """
    Picks the response strategy for a message and renders its template.

    Usage:
        >>> composer = ResponseComposer()
        >>> reply = composer.compose(ClosingContext(intent=Intent.READY_TO_BUY))
        >>> reply.next_step
        'collect_order_details'
    """

    def __init__(self, library: SequenceLibrary | None = None):
        self.library = library or get_sequence_library()

    def select_branch(self, context: ClosingContext) -> Branch:
        for branch in DECISION_TABLE:
            if branch.when(context):
                return branch
        return DECISION_TABLE[-1]

    def compose(self, context: ClosingContext, rng: random.Random | None = None) -> ComposedResponse:
        """
        Args:
            context: Classifier outputs plus workspace data
            rng: Only used to vary the funnel-sequence fallback text; without
                it the first variant is used
        """
        branch = self.select_branch(context)

        if branch.template is None:
            if rng is not None:
                found = self.library.random_template(context.stage, rng)
            else:
                found = self.library.lookup(context.stage)
        else:
            name = branch.template(context) if callable(branch.template) else branch.template
            found = self.library.lookup(f"{CLOSING}/{name}")

        message = self.library.render(found.text, **self._fields(context))

        return ComposedResponse(
            branch=branch.number,
            strategy=branch.strategy,
            urgency=branch.urgency,
            next_step=branch.next_step,
            should_escalate=branch.should_escalate,
            template_ref=found.ref,
            message=message.strip() or found.text,
        )

    def _fields(self, context: ClosingContext) -> dict:
        workspace = context.workspace
        plan = workspace.compensation_plan_summary
        return {
            "product_name": workspace.product_name,
            "company_name": workspace.company_name,
            "price_label": workspace.price_label,
            "business_package_label": workspace.business_package_label,
            "plan_line": f"\n{plan}\n" if plan else "",
            "promo_line": self.library.fragment("promo_line") if workspace.has_promo else "",
            "cod_line": self.library.fragment("cod_line") if workspace.has_cod else "",
            "cod_option": self.library.fragment("cod_option") if workspace.has_cod else "",
            "delivery_options": self.library.fragment(
                "cod_delivery" if workspace.has_cod else "prepaid_delivery"
            ),
            "rebuttal": context.rebuttal or self._rebuttal(context),
        }

    def _rebuttal(self, context: ClosingContext) -> str:
        kind = context.objection if context.objection != ObjectionKind.NONE else ObjectionKind.HESITATION
        rebuttals = self.library.variants(kind)
        if not rebuttals:
            return GENERIC_REBUTTAL
        text = rebuttals[rebuttal_index(len(rebuttals), context.temperature)]
        return self.library.render(text, product_name=context.workspace.product_name)

    def quick_closing(self, intent: Intent, product_name: str, price=None) -> str:
        """Closing-stage message for a lead that is ready to order."""
        context = ClosingContext(
            intent=intent,
            signals=[BuyingSignal.READY_TO_ORDER],
            stage=FunnelStage.CLOSING,
            workspace=WorkspaceContext(product_name=product_name, price=price),
        )
        return self.compose(context).message
