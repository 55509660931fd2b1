"""
Objection Detector
Classifies the reason a visitor is holding back and picks a rebuttal for it.
"""
from typing import List, Optional
from loguru import logger
from closer.models.analysis import ObjectionAnalysis
from closer.models.vocabulary import Intent, LeadTemperature, ObjectionKind, is_hot
from closer.rules import RulePack, load_rule_pack
from closer.sequences import SequenceLibrary, get_sequence_library

NO_OBJECTION_CONFIDENCE = 0.3

GENERIC_REBUTTAL = "Naiintindihan ko po. Ano po ang pinaka-concern n'yo para matulungan ko kayo?"

# kind -> (label, summary)
STRATEGIES = {
    ObjectionKind.PRICE: (
        "value_over_price",
        "VALUE OVER PRICE: Show ROI, daily cost breakdown, compare to alternatives, bundle savings",
    ),
    ObjectionKind.TOO_EXPENSIVE: (
        "anchor_value",
        "ANCHOR VALUE: Social proof, results, testimonials, payment plans",
    ),
    ObjectionKind.HESITATION: (
        "qualify_deeper",
        "QUALIFY DEEPER: Ask questions, find root concern, address specifically, soften close",
    ),
    ObjectionKind.DECISION_DELAY: (
        "create_urgency",
        "CREATE URGENCY: Limited stocks, promo ending, reservation option, FOMO gently",
    ),
    ObjectionKind.NEEDS_MORE_INFO: (
        "educate_concisely",
        "EDUCATE CONCISELY: Answer specific question, provide proof, ask if clear",
    ),
    ObjectionKind.SKEPTICISM: (
        "build_trust",
        "BUILD TRUST: Testimonials, certifications, reviews, proven results, transparent process",
    ),
    ObjectionKind.COMPETITION: (
        "differentiate",
        "DIFFERENTIATE: Unique benefits, customer success, quality focus, don't bash others",
    ),
    ObjectionKind.TIMING: (
        "schedule_follow_up",
        "SCHEDULE FOLLOW-UP: Acknowledge timing, ask when better, offer reminder, gentle urgency",
    ),
    ObjectionKind.NONE: (
        "general_empathy",
        "GENERAL EMPATHY: Listen, understand, ask qualifying questions",
    ),
}

_INTENT_BY_OBJECTION = {
    ObjectionKind.PRICE: Intent.PRICE,
    ObjectionKind.TOO_EXPENSIVE: Intent.HESITATION,
    ObjectionKind.HESITATION: Intent.HESITATION,
    ObjectionKind.DECISION_DELAY: Intent.FOLLOW_UP,
    ObjectionKind.NEEDS_MORE_INFO: Intent.PRODUCT_INQUIRY,
    ObjectionKind.SKEPTICISM: Intent.BUSINESS_DETAILS,
    ObjectionKind.COMPETITION: Intent.PRODUCT_INQUIRY,
    ObjectionKind.TIMING: Intent.FOLLOW_UP,
    ObjectionKind.NONE: Intent.OFF_TOPIC,
}

DESCRIPTIONS = {
    ObjectionKind.PRICE: "Price concern - wants to know if worth the cost",
    ObjectionKind.TOO_EXPENSIVE: "Strong price objection - thinks it's too expensive",
    ObjectionKind.HESITATION: "Hesitating - unsure about decision",
    ObjectionKind.DECISION_DELAY: "Delaying decision - wants to decide later",
    ObjectionKind.NEEDS_MORE_INFO: "Needs more information before deciding",
    ObjectionKind.SKEPTICISM: "Skeptical - questioning legitimacy/effectiveness",
    ObjectionKind.COMPETITION: "Comparing with competitors",
    ObjectionKind.TIMING: "Bad timing - not right moment to buy",
    ObjectionKind.NONE: "No objection detected",
}


def rebuttal_index(count: int, temperature: LeadTemperature) -> int:
    """
    Position of the rebuttal to use out of `count` variants.

    Variants are stored most direct first, most detailed last:
    hot and ready_to_buy get the first, cold the last, warm the midpoint.
    """
    if is_hot(temperature):
        return 0
    if temperature == LeadTemperature.COLD:
        return count - 1
    return count // 2


class ObjectionDetector:
    """Strong price objections are checked before plain price mentions."""

    def __init__(self, rule_pack: RulePack | None = None, library: SequenceLibrary | None = None):
        self.rules = rule_pack or load_rule_pack("objections")
        self.library = library or get_sequence_library()

    def detect(self, text: Optional[str]) -> ObjectionKind:
        normalized = (text or "").strip().lower()
        match = self.rules.first_match(normalized) if normalized else None
        return ObjectionKind(match.category) if match else ObjectionKind.NONE

    def with_analysis(
        self,
        text: Optional[str],
        temperature: LeadTemperature = LeadTemperature.COLD,
        **fields,
    ) -> ObjectionAnalysis:
        """
        Detect the objection and attach confidence, strategy and a rebuttal
        chosen for the lead temperature. Extra keyword arguments fill
        ${placeholders} in the rebuttal text.
        """
        normalized = (text or "").strip().lower()
        match = self.rules.first_match(normalized) if normalized else None

        if match is None:
            kind, confidence = ObjectionKind.NONE, NO_OBJECTION_CONFIDENCE
        else:
            kind, confidence = ObjectionKind(match.category), match.confidence
            logger.debug(f"Objection: {kind} ({confidence}) via rule {match.rule}")

        label, summary = self.strategy_for(kind)
        index, rebuttal = self._pick(kind, temperature)

        return ObjectionAnalysis(
            kind=kind,
            confidence=confidence,
            strategy=label,
            strategy_summary=summary,
            rebuttal=self.library.render(rebuttal, **fields),
            template_ref=f"rebuttal/{kind.value}#{index}" if index is not None else "rebuttal/generic",
        )

    @staticmethod
    def strategy_for(kind: ObjectionKind) -> tuple[str, str]:
        return STRATEGIES.get(kind, STRATEGIES[ObjectionKind.NONE])

    @staticmethod
    def map_to_intent(kind: ObjectionKind) -> Intent:
        return _INTENT_BY_OBJECTION.get(kind, Intent.OFF_TOPIC)

    @staticmethod
    def describe(kind: ObjectionKind) -> str:
        return DESCRIPTIONS.get(kind, str(kind))

    def all_rebuttals(self, kind: ObjectionKind) -> List[str]:
        """Every stored rebuttal for the objection, most direct first."""
        return self.library.variants(kind)

    def select_contextual_rebuttal(self, kind: ObjectionKind, temperature: LeadTemperature) -> str:
        return self._pick(kind, temperature)[1]

    def _pick(self, kind: ObjectionKind, temperature: LeadTemperature) -> tuple[Optional[int], str]:
        rebuttals = self.all_rebuttals(kind)
        if not rebuttals:
            return None, GENERIC_REBUTTAL
        index = rebuttal_index(len(rebuttals), temperature)
        return index, rebuttals[index]
