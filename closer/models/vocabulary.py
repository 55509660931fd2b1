"""
Signal Vocabulary
Closed tag sets shared by every engine, plus the ordering tables
the funnel and temperature logic rely on.
"""
from enum import StrEnum


class Intent(StrEnum):
    GREETING = "greeting"
    PRODUCT_INQUIRY = "product_inquiry"
    BENEFITS = "benefits"
    PRICE = "price"
    ORDERING = "ordering"
    SHIPPING_COD = "shipping_cod"
    SIDE_EFFECTS = "side_effects"
    OBJECTION = "objection"
    HESITATION = "hesitation"
    EARNING_OPPORTUNITY = "earning_opportunity"
    BUSINESS_DETAILS = "business_details"
    READY_TO_BUY = "ready_to_buy"
    FOLLOW_UP = "follow_up"
    SUPPORT = "support"
    COMPLAINT = "complaint"
    OFF_TOPIC = "off_topic"
    DEFAULT = "default"


class FunnelStage(StrEnum):
    AWARENESS = "awareness"
    INTEREST = "interest"
    EVALUATION = "evaluation"
    DECISION = "decision"
    CLOSING = "closing"
    FOLLOW_UP = "follow_up"
    REVIVAL = "revival"


class BuyingSignal(StrEnum):
    READY_TO_ORDER = "ready_to_order"
    URGENCY = "urgency"
    PRICE_CHECK = "price_check"
    COD_INTEREST = "cod_interest"
    DELIVERY_CHECK = "delivery_check"
    QUANTITY_INQUIRY = "quantity_inquiry"
    PAYMENT_OPTIONS = "payment_options"
    VALIDATION = "validation"
    PROMO_INTEREST = "promo_interest"
    PRODUCT_COMPARISON = "product_comparison"
    NONE = "none"


class ObjectionKind(StrEnum):
    PRICE = "price"
    TOO_EXPENSIVE = "too_expensive"
    HESITATION = "hesitation"
    DECISION_DELAY = "decision_delay"
    NEEDS_MORE_INFO = "needs_more_info"
    SKEPTICISM = "skepticism"
    COMPETITION = "competition"
    TIMING = "timing"
    NONE = "none"


class LeadTemperature(StrEnum):
    COLD = "cold"
    WARM = "warm"
    HOT = "hot"
    READY_TO_BUY = "ready_to_buy"


class Urgency(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ResponseStrategy(StrEnum):
    """One tag per branch of the closing decision table."""
    COLLECT_ORDER = "collect_order"
    VALUE_FRAMING = "value_framing"
    DELIVERY_DETAILS = "delivery_details"
    BUNDLE_PRESENTATION = "bundle_presentation"
    PAYMENT_EXPLANATION = "payment_explanation"
    FAST_TRACK = "fast_track"
    OBJECTION_REBUTTAL = "objection_rebuttal"
    BUSINESS_PACKAGE = "business_package"
    DECISION_PUSH = "decision_push"
    DIRECT_CTA = "direct_cta"
    REVIVAL = "revival"
    TRUST_BUILDING = "trust_building"
    PROMO = "promo"
    STAGE_SEQUENCE = "stage_sequence"


class Persona(StrEnum):
    SALES = "sales"
    MLM_LEADER = "mlm_leader"
    SUPPORT = "support"
    PRODUCT_EXPERT = "product_expert"
    DEFAULT = "default"


class Channel(StrEnum):
    WEB = "web"
    MESSENGER = "messenger"
    EMAIL = "email"
    SMS = "sms"


# Ordered funnel: awareness < interest < evaluation < decision < closing
FUNNEL_ORDER: tuple[FunnelStage, ...] = (
    FunnelStage.AWARENESS,
    FunnelStage.INTEREST,
    FunnelStage.EVALUATION,
    FunnelStage.DECISION,
    FunnelStage.CLOSING,
)

# Reachable from any stage, outside the ordering
SIDE_STAGES: frozenset[FunnelStage] = frozenset({FunnelStage.FOLLOW_UP, FunnelStage.REVIVAL})

TERMINAL_STAGES: frozenset[FunnelStage] = frozenset(
    {FunnelStage.CLOSING, FunnelStage.FOLLOW_UP, FunnelStage.REVIVAL}
)

TEMPERATURE_ORDER: tuple[LeadTemperature, ...] = (
    LeadTemperature.COLD,
    LeadTemperature.WARM,
    LeadTemperature.HOT,
    LeadTemperature.READY_TO_BUY,
)

URGENCY_ORDER: tuple[Urgency, ...] = (
    Urgency.LOW,
    Urgency.MEDIUM,
    Urgency.HIGH,
    Urgency.CRITICAL,
)


def is_side_stage(stage: FunnelStage) -> bool:
    return stage in SIDE_STAGES


def stage_rank(stage: FunnelStage) -> int:
    """Position in FUNNEL_ORDER. Side-stages have no rank and return -1."""
    try:
        return FUNNEL_ORDER.index(stage)
    except ValueError:
        return -1


def temperature_rank(temperature: LeadTemperature) -> int:
    return TEMPERATURE_ORDER.index(temperature)


def warmer(temperature: LeadTemperature) -> LeadTemperature:
    """One band up, saturating at READY_TO_BUY."""
    idx = min(temperature_rank(temperature) + 1, len(TEMPERATURE_ORDER) - 1)
    return TEMPERATURE_ORDER[idx]


def raise_urgency(urgency: Urgency) -> Urgency:
    """One level up, saturating at CRITICAL."""
    idx = min(URGENCY_ORDER.index(urgency) + 1, len(URGENCY_ORDER) - 1)
    return URGENCY_ORDER[idx]


def is_hot(temperature: LeadTemperature) -> bool:
    return temperature in (LeadTemperature.HOT, LeadTemperature.READY_TO_BUY)
