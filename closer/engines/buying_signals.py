"""
Buying Signal Detector
Independent classifier over the same text as the intent classifier.
Produces the single highest-priority signal and the full set of signals.
"""
from typing import Iterable, List, Optional
from loguru import logger
from closer.models.analysis import SignalAnalysis
from closer.models.vocabulary import BuyingSignal, LeadTemperature, warmer
from closer.rules import RulePack, load_rule_pack

LONG_MESSAGE_CHARS = 50
LONG_MESSAGE_BOOST = 0.05

# signal -> (temperature hint, suggested action)
SIGNAL_PLAYBOOK = {
    BuyingSignal.READY_TO_ORDER: (LeadTemperature.READY_TO_BUY, "send_order_instructions_immediately"),
    BuyingSignal.URGENCY: (LeadTemperature.HOT, "emphasize_fast_delivery_and_close"),
    BuyingSignal.QUANTITY_INQUIRY: (LeadTemperature.HOT, "offer_bundle_deals_and_close"),
    BuyingSignal.PAYMENT_OPTIONS: (LeadTemperature.HOT, "explain_payment_and_close"),
    BuyingSignal.PRICE_CHECK: (LeadTemperature.WARM, "present_value_and_bundles"),
    BuyingSignal.COD_INTEREST: (LeadTemperature.WARM, "confirm_cod_available_and_close"),
    BuyingSignal.DELIVERY_CHECK: (LeadTemperature.WARM, "explain_shipping_and_move_to_order"),
    BuyingSignal.VALIDATION: (LeadTemperature.WARM, "provide_social_proof_and_guarantees"),
    BuyingSignal.PROMO_INTEREST: (LeadTemperature.WARM, "present_bundle_savings"),
    BuyingSignal.PRODUCT_COMPARISON: (LeadTemperature.WARM, "highlight_unique_benefits"),
    BuyingSignal.NONE: (LeadTemperature.COLD, "qualify_needs_and_educate"),
}

# Points per signal for the 0-100 buying intent score
INTENT_POINTS = {
    BuyingSignal.READY_TO_ORDER: 40,
    BuyingSignal.URGENCY: 30,
    BuyingSignal.QUANTITY_INQUIRY: 25,
    BuyingSignal.PAYMENT_OPTIONS: 25,
    BuyingSignal.COD_INTEREST: 20,
    BuyingSignal.DELIVERY_CHECK: 15,
    BuyingSignal.PRICE_CHECK: 15,
    BuyingSignal.VALIDATION: 10,
    BuyingSignal.PROMO_INTEREST: 10,
    BuyingSignal.PRODUCT_COMPARISON: 10,
    BuyingSignal.NONE: 0,
}

_HISTORY_BONUS_WORDS = (
    ("order", "bili"),
    ("magkano", "price"),
    ("interested", "gusto"),
)

DESCRIPTIONS = {
    BuyingSignal.PRICE_CHECK: "Asking about price - evaluation stage",
    BuyingSignal.READY_TO_ORDER: "Ready to buy now - hot lead",
    BuyingSignal.URGENCY: "Needs it fast - high intent",
    BuyingSignal.VALIDATION: "Checking legitimacy - trust building",
    BuyingSignal.COD_INTEREST: "Interested in COD - decision stage",
    BuyingSignal.DELIVERY_CHECK: "Asking about shipping - decision stage",
    BuyingSignal.PROMO_INTEREST: "Looking for deals - price-sensitive",
    BuyingSignal.PRODUCT_COMPARISON: "Comparing options - evaluation",
    BuyingSignal.QUANTITY_INQUIRY: "Asking about quantities - closing signal",
    BuyingSignal.PAYMENT_OPTIONS: "Payment questions - closing signal",
    BuyingSignal.NONE: "No buying signal detected",
}


class BuyingSignalDetector:
    """
    ready_to_order and urgency rank above price_check, which ranks above
    soft signals such as validation and promo_interest.
    """

    def __init__(self, rule_pack: RulePack | None = None):
        self.rules = rule_pack or load_rule_pack("buying_signals")

    def detect_signal(self, text: Optional[str]) -> BuyingSignal:
        """Single highest-priority signal, or NONE."""
        normalized = (text or "").strip().lower()
        match = self.rules.first_match(normalized) if normalized else None
        return BuyingSignal(match.category) if match else BuyingSignal.NONE

    def detect_all_signals(self, text: Optional[str]) -> List[BuyingSignal]:
        """Every matching signal in priority order. Empty when nothing matches."""
        normalized = (text or "").strip().lower()
        if not normalized:
            return []
        signals = [BuyingSignal(m.category) for m in self.rules.all_matches(normalized)]
        if signals:
            logger.debug(f"Buying signals: {[s.value for s in signals]}")
        return signals

    def detect_with_analysis(self, text: Optional[str]) -> SignalAnalysis:
        normalized = (text or "").strip().lower()
        match = self.rules.first_match(normalized) if normalized else None

        if match is None:
            signal, confidence = BuyingSignal.NONE, 0.5
        else:
            signal, confidence = BuyingSignal(match.category), match.confidence

        temperature, action = SIGNAL_PLAYBOOK[signal]

        if len(normalized) > LONG_MESSAGE_CHARS:
            confidence = min(confidence + LONG_MESSAGE_BOOST, 1.0)

        if len(self.detect_all_signals(normalized)) > 1 and temperature != LeadTemperature.READY_TO_BUY:
            temperature = warmer(temperature)

        return SignalAnalysis(
            signal=signal,
            confidence=round(confidence, 4),
            temperature_hint=temperature,
            suggested_action=action,
        )

    @staticmethod
    def buying_intent_score(signals: Iterable[BuyingSignal], history: Iterable[str] = ()) -> int:
        """0-100 purchase intent from this message's signals plus history words."""
        score = sum(INTENT_POINTS.get(signal, 0) for signal in signals)

        history_text = " ".join(h for h in history if h).lower()
        for words in _HISTORY_BONUS_WORDS:
            if any(word in history_text for word in words):
                score += 5

        return min(score, 100)

    @staticmethod
    def describe(signal: BuyingSignal) -> str:
        return DESCRIPTIONS.get(signal, str(signal))
