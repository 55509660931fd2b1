"""
Intent Classifier
Maps raw message text to exactly one Intent using the ordered intent rule
pack. Pure and deterministic: same text + same pack => same result.
"""
from typing import Iterable, Optional
from loguru import logger
from closer.models.analysis import IntentResult
from closer.models.vocabulary import Intent, Persona
from closer.rules import RulePack, load_rule_pack

EMPTY_TEXT_CONFIDENCE = 0.2
NO_MATCH_CONFIDENCE = 0.3
REPEATED_INTENT_BOOST = 0.2
PRICE_HISTORY_BOOST = 0.1

_PRICE_HISTORY_WORDS = ("price", "magkano", "how much", "presyo")

_PERSONA_BY_INTENT = {
    Intent.SUPPORT: Persona.SUPPORT,
    Intent.COMPLAINT: Persona.SUPPORT,
    Intent.BENEFITS: Persona.PRODUCT_EXPERT,
    Intent.SIDE_EFFECTS: Persona.PRODUCT_EXPERT,
    Intent.OFF_TOPIC: Persona.DEFAULT,
    Intent.DEFAULT: Persona.DEFAULT,
}


class IntentClassifier:
    """
    Ready-to-buy and greeting rules sit at the top of the pack, ahead of
    the generic product-inquiry rule, so an urgent "order na!" is never
    masked by a looser keyword elsewhere in the message.

    Usage:
        >>> IntentClassifier().classify("Magkano po?").intent
        <Intent.PRICE: 'price'>
    """

    def __init__(self, rule_pack: RulePack | None = None):
        self.rules = rule_pack or load_rule_pack("intents")

    def classify(self, text: Optional[str]) -> IntentResult:
        """Total: every input, including None and blank text, gets an intent."""
        normalized = (text or "").strip().lower()
        if not normalized:
            return IntentResult(intent=Intent.DEFAULT, confidence=EMPTY_TEXT_CONFIDENCE)

        match = self.rules.first_match(normalized)
        if match is None:
            logger.debug("No intent rule matched, returning default")
            return IntentResult(intent=Intent.DEFAULT, confidence=NO_MATCH_CONFIDENCE)

        result = IntentResult(
            intent=Intent(match.category),
            confidence=match.confidence,
            rule=match.rule,
            keywords=list(match.keywords),
        )
        logger.debug(f"Intent: {result.intent} ({result.confidence}) via rule {match.rule}")
        return result

    def classify_with_context(
        self,
        text: Optional[str],
        previous_intent: Optional[Intent] = None,
        history: Iterable[str] = (),
    ) -> IntentResult:
        """
        Same intent as classify(); only the confidence reflects context.
        A repeat of the previous intent and an earlier price question
        both raise confidence.
        """
        base = self.classify(text)
        confidence = base.confidence

        if previous_intent is not None and base.intent == previous_intent:
            confidence += REPEATED_INTENT_BOOST

        if base.intent == Intent.PRICE:
            history_text = " ".join(h for h in history if h).lower()
            if any(word in history_text for word in _PRICE_HISTORY_WORDS):
                confidence += PRICE_HISTORY_BOOST

        return base.model_copy(update={"confidence": round(min(confidence, 1.0), 4)})

    @staticmethod
    def persona_for(intent: Intent, is_leader: bool = False) -> Persona:
        """Which persona should carry the reply for this intent."""
        if intent == Intent.EARNING_OPPORTUNITY:
            return Persona.MLM_LEADER if is_leader else Persona.SALES
        return _PERSONA_BY_INTENT.get(intent, Persona.SALES)
