"""Output contracts of the individual engines."""
from typing import Dict, List, Optional
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


class IntentResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    intent: Intent
    confidence: float = Field(ge=0, le=1.0)
    rule: Optional[str] = None
    keywords: List[str] = Field(default_factory=list)


class SignalAnalysis(BaseModel):
    model_config = ConfigDict(frozen=True)

    signal: BuyingSignal
    confidence: float = Field(ge=0, le=1.0)
    temperature_hint: LeadTemperature
    suggested_action: str


class ObjectionAnalysis(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: ObjectionKind
    confidence: float = Field(ge=0, le=1.0)
    strategy: str = Field(..., description="Short strategy label, e.g. value_over_price")
    strategy_summary: str
    rebuttal: str
    template_ref: str


class LeadScore(BaseModel):
    model_config = ConfigDict(frozen=True)

    score: int = Field(ge=0, le=100)
    raw_score: int = Field(..., description="Additive total before clamping")
    temperature: LeadTemperature
    breakdown: Dict[str, int] = Field(default_factory=dict)
    reasons: List[str] = Field(default_factory=list)


class FunnelStep(BaseModel):
    model_config = ConfigDict(frozen=True)

    stage: FunnelStage
    previous_stage: FunnelStage
    suggested_stage: FunnelStage
    sequence_key: str
    persona: Persona
    goal: str
    guidance: str
    recommended_actions: List[str] = Field(default_factory=list)


class ComposedResponse(BaseModel):
    """One row of the closing decision table, rendered."""
    model_config = ConfigDict(frozen=True)

    branch: int = Field(ge=1, le=14)
    strategy: ResponseStrategy
    urgency: Urgency
    next_step: str
    should_escalate: bool
    template_ref: str
    message: str
