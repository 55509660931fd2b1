"""
Rule pack loading and ordered evaluation.

A rule pack is an ordered list of (predicate, category, weight) rows kept
as JSON, so a rule change is a data change. Evaluation is top-down: the
first rule whose predicate holds wins.
"""
import json
import re
from dataclasses import dataclass
from functools import lru_cache
from importlib import resources
from typing import List, Optional
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, ValidationError, model_validator
from closer.config import get_settings
from closer.exceptions import RulePackError

CO_OCCURRENCE_BOOST = 0.05


@dataclass(frozen=True)
class RuleMatch:
    """A rule that fired on a piece of text."""
    rule: str
    category: str
    confidence: float
    keywords: tuple[str, ...]


class RuleSpec(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    category: str
    patterns: List[str] = Field(..., min_length=1)
    weight: float = Field(ge=0, le=1.0)
    max_length: Optional[int] = Field(None, gt=0)
    strong_patterns: List[str] = Field(default_factory=list)
    strong_weight: Optional[float] = Field(None, ge=0, le=1.0)

    _compiled: tuple = PrivateAttr(default=())
    _compiled_strong: tuple = PrivateAttr(default=())

    @model_validator(mode="after")
    def _compile(self):
        try:
            self._compiled = tuple(re.compile(p, re.IGNORECASE) for p in self.patterns)
            self._compiled_strong = tuple(re.compile(p, re.IGNORECASE) for p in self.strong_patterns)
        except re.error as e:
            raise ValueError(f"rule {self.name!r} has an invalid pattern: {e}") from e
        return self

    def match(self, text: str) -> Optional[RuleMatch]:
        """Evaluate this rule's predicate against already-lowercased text."""
        if self.max_length is not None and len(text) >= self.max_length:
            return None

        keywords = []
        for pattern in self._compiled:
            found = pattern.search(text)
            if found:
                keywords.append(found.group(0).strip())
        if not keywords:
            return None

        confidence = self.weight
        if self.strong_weight is not None and any(p.search(text) for p in self._compiled_strong):
            confidence = self.strong_weight
        if len(keywords) >= 2:
            confidence += CO_OCCURRENCE_BOOST

        return RuleMatch(
            rule=self.name,
            category=self.category,
            confidence=round(min(confidence, 1.0), 4),
            keywords=tuple(keywords),
        )


class RulePack(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    version: str
    rules: List[RuleSpec] = Field(..., min_length=1)

    def first_match(self, text: str) -> Optional[RuleMatch]:
        """Top-down evaluation; the first rule that fires wins."""
        for rule in self.rules:
            found = rule.match(text)
            if found is not None:
                return found
        return None

    def all_matches(self, text: str) -> List[RuleMatch]:
        """Every rule that fires, in priority order, one entry per category."""
        seen = set()
        matches = []
        for rule in self.rules:
            if rule.category in seen:
                continue
            found = rule.match(text)
            if found is not None:
                seen.add(rule.category)
                matches.append(found)
        return matches

    def categories(self) -> List[str]:
        return [rule.category for rule in self.rules]


@lru_cache(maxsize=None)
def load_rule_pack(name: str) -> RulePack:
    """
    Load and validate a bundled rule pack by name (e.g. "intents").

    Raises:
        RulePackError: if the file is missing, not JSON, or fails validation
    """
    try:
        raw = resources.files("closer.rules").joinpath("data", f"{name}.json").read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise RulePackError(f"Rule pack {name!r} not found") from e

    try:
        pack = RulePack.model_validate({"name": name, **json.loads(raw)})
    except (json.JSONDecodeError, ValidationError) as e:
        raise RulePackError(f"Rule pack {name!r} is invalid: {e}") from e

    expected = get_settings().rule_pack_version
    if not pack.version.startswith(expected):
        logger.warning(f"Rule pack {name} is version {pack.version}, expected {expected}.x")

    logger.debug(f"Loaded rule pack {name} v{pack.version} with {len(pack.rules)} rules")
    return pack
