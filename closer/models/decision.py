"""
Conversation Decision
The immutable record produced once per inbound message.
"""
from typing import List
from pydantic import BaseModel, ConfigDict, Field
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


class ConversationDecision(BaseModel):
    """
    What to do with this message, and the snapshot that produced it.

    Handed to the external generation backend, which may expand the
    template into free text. Custom workspace instructions apply after,
    never before, this decision.
    """
    model_config = ConfigDict(frozen=True)

    conversation_id: str

    # Chosen response
    strategy: ResponseStrategy
    urgency: Urgency
    next_step: str
    should_escalate: bool
    message: str = Field(..., min_length=1)
    template_ref: str
    branch: int = Field(ge=0, le=14, description="Decision table row that fired; 0 for the fallback decision")

    # Snapshot
    stage: FunnelStage
    previous_stage: FunnelStage
    temperature: LeadTemperature
    score: int = Field(ge=0, le=100)
    intent: Intent
    intent_confidence: float = Field(ge=0, le=1.0)
    signal: BuyingSignal
    signals: List[BuyingSignal] = Field(default_factory=list)
    objection: ObjectionKind = ObjectionKind.NONE
    objection_confidence: float = Field(default=0.0, ge=0, le=1.0)
    objection_strategy: str = "general_empathy"

    # Guidance
    persona: Persona = Persona.SALES
    goal: str = ""
    recommended_actions: List[str] = Field(default_factory=list)

    @property
    def stage_changed(self) -> bool:
        return self.stage != self.previous_stage
