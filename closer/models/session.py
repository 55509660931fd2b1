"""
Session Context
The caller-owned conversation state the core reads. Never mutated here:
callers persist the returned SessionUpdate into their own store.
"""
from typing import Any, List, Optional
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, field_validator
from closer.models.vocabulary import BuyingSignal, FunnelStage, Intent, LeadTemperature


def _coerce_tags(values: Any, enum_cls) -> list:
    """Keep only values that belong to enum_cls; anything else is dropped."""
    if values is None:
        return []
    if isinstance(values, (str, bytes)):
        values = [values]
    kept = []
    for value in values:
        try:
            kept.append(enum_cls(value))
        except ValueError:
            logger.warning(f"Dropping unknown {enum_cls.__name__} tag from history: {value!r}")
    return kept


class SessionContext(BaseModel):
    """
    Read-only input describing where a conversation stands.

    Malformed fields are repaired instead of rejected: a degraded decision
    beats blocking a live conversation.
    """
    model_config = ConfigDict(frozen=True)

    conversation_id: str = "anonymous"
    intent_history: List[Intent] = Field(default_factory=list)
    signal_history: List[BuyingSignal] = Field(default_factory=list)
    current_stage: FunnelStage = FunnelStage.AWARENESS
    message_count: int = 0
    # None means "just replied"
    hours_since_last_reply: float = 0.0
    member_rank: Optional[str] = None

    @field_validator("conversation_id", mode="before")
    @classmethod
    def _default_conversation_id(cls, value: Any) -> str:
        if value is None or str(value).strip() == "":
            return "anonymous"
        return str(value)

    @field_validator("intent_history", mode="before")
    @classmethod
    def _clean_intents(cls, value: Any) -> list:
        return _coerce_tags(value, Intent)

    @field_validator("signal_history", mode="before")
    @classmethod
    def _clean_signals(cls, value: Any) -> list:
        return _coerce_tags(value, BuyingSignal)

    @field_validator("current_stage", mode="before")
    @classmethod
    def _clean_stage(cls, value: Any) -> FunnelStage:
        if value is None:
            return FunnelStage.AWARENESS
        try:
            return FunnelStage(value)
        except ValueError:
            logger.warning(f"Unknown funnel stage {value!r}, treating as awareness")
            return FunnelStage.AWARENESS

    @field_validator("message_count", mode="before")
    @classmethod
    def _clean_message_count(cls, value: Any) -> int:
        try:
            return max(0, int(value))
        except (TypeError, ValueError):
            return 0

    @field_validator("hours_since_last_reply", mode="before")
    @classmethod
    def _clean_elapsed(cls, value: Any) -> float:
        try:
            hours = float(value)
        except (TypeError, ValueError):
            return 0.0
        if hours != hours or hours < 0:  # NaN or negative
            return 0.0
        return hours


class SessionUpdate(BaseModel):
    """What the caller must write back after a decision is accepted."""
    model_config = ConfigDict(frozen=True)

    conversation_id: str
    stage: FunnelStage
    score: int = Field(ge=0, le=100)
    temperature: LeadTemperature
    intent_history: List[Intent]
    signal_history: List[BuyingSignal]
    message_count: int

    def apply_to(self, session: SessionContext) -> SessionContext:
        """Next SessionContext for the same conversation, with the clock reset."""
        return session.model_copy(update={
            "current_stage": self.stage,
            "intent_history": list(self.intent_history),
            "signal_history": list(self.signal_history),
            "message_count": self.message_count,
            "hours_since_last_reply": 0.0,
        })
