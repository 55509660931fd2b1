"""
Template lookup over the bundled content packs.

Keys are namespaced: "funnel/<stage>", "rebuttal/<objection>" and
"closing/<template>". A FunnelStage or ObjectionKind can be passed
directly. Every lookup resolves to some text: misses fall back to the
awareness opener.
"""
import json
import random
from dataclasses import dataclass
from functools import lru_cache
from importlib import resources
from string import Template
from typing import Dict, List, Optional, Union
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from closer.exceptions import RulePackError, TemplateNotFoundError
from closer.models.vocabulary import FunnelStage, ObjectionKind

FUNNEL = "funnel"
REBUTTAL = "rebuttal"
CLOSING = "closing"

_PACK_FILES = {
    FUNNEL: "funnel_sequences",
    REBUTTAL: "objection_rebuttals",
    CLOSING: "closing_templates",
}

FALLBACK_KEY = f"{FUNNEL}/{FunnelStage.AWARENESS.value}"

TemplateKey = Union[FunnelStage, ObjectionKind, str]


class ContentPack(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    version: str
    templates: Dict[str, List[str]]
    fragments: Dict[str, str] = Field(default_factory=dict)

    @field_validator("templates")
    @classmethod
    def _no_empty_entries(cls, value: Dict[str, List[str]]) -> Dict[str, List[str]]:
        for key, variants in value.items():
            if not variants or any(not v.strip() for v in variants):
                raise ValueError(f"template {key!r} has an empty variant list or blank text")
        return value


@dataclass(frozen=True)
class TemplateLookup:
    ref: str
    text: str
    is_fallback: bool = False


@lru_cache(maxsize=None)
def load_content_pack(name: str) -> ContentPack:
    """
    Load a bundled content pack by file name (e.g. "funnel_sequences").

    Raises:
        RulePackError: if the file is missing or fails validation
    """
    try:
        raw = resources.files("closer.sequences").joinpath("data", f"{name}.json").read_text(encoding="utf-8")
        return ContentPack.model_validate({"name": name, **json.loads(raw)})
    except FileNotFoundError as e:
        raise RulePackError(f"Content pack {name!r} not found") from e
    except (json.JSONDecodeError, ValidationError) as e:
        raise RulePackError(f"Content pack {name!r} is invalid: {e}") from e


class SequenceLibrary:
    """
    Read-only lookup `get_template(stage | objection | name, variant_index?)`.

    Packs can be swapped by passing different ContentPack instances, e.g.
    a workspace-specific funnel pack.
    """

    def __init__(
        self,
        funnel: ContentPack | None = None,
        rebuttals: ContentPack | None = None,
        closing: ContentPack | None = None,
    ):
        self._packs: Dict[str, ContentPack] = {
            FUNNEL: funnel or load_content_pack(_PACK_FILES[FUNNEL]),
            REBUTTAL: rebuttals or load_content_pack(_PACK_FILES[REBUTTAL]),
            CLOSING: closing or load_content_pack(_PACK_FILES[CLOSING]),
        }
        if FunnelStage.AWARENESS.value not in self._packs[FUNNEL].templates:
            raise RulePackError("Funnel pack must define an awareness template")

    @property
    def versions(self) -> Dict[str, str]:
        return {namespace: pack.version for namespace, pack in self._packs.items()}

    def fragment(self, name: str) -> str:
        return self._packs[CLOSING].fragments.get(name, "")

    def resolve_key(self, key: TemplateKey) -> str:
        """Normalize a key to "<namespace>/<name>"."""
        if isinstance(key, FunnelStage):
            return f"{FUNNEL}/{key.value}"
        if isinstance(key, ObjectionKind):
            return f"{REBUTTAL}/{key.value}"
        key = str(key)
        if "/" in key:
            return key
        # Bare names: closing templates first, then funnel stages
        if key in self._packs[CLOSING].templates:
            return f"{CLOSING}/{key}"
        return f"{FUNNEL}/{key}"

    def variants(self, key: TemplateKey) -> List[str]:
        namespace, _, name = self.resolve_key(key).partition("/")
        pack = self._packs.get(namespace)
        if pack is None:
            return []
        return list(pack.templates.get(name, []))

    def has_template(self, key: TemplateKey) -> bool:
        return bool(self.variants(key))

    def lookup(self, key: TemplateKey, variant_index: Optional[int] = None) -> TemplateLookup:
        """
        Resolve a key to template text. Indexes wrap around the variant list;
        None means the first variant.
        """
        resolved = self.resolve_key(key)
        variants = self.variants(resolved)
        is_fallback = False
        if not variants:
            logger.warning(f"Template {resolved!r} not found, falling back to {FALLBACK_KEY}")
            resolved = FALLBACK_KEY
            variants = self.variants(FALLBACK_KEY)
            is_fallback = True

        index = (variant_index or 0) % len(variants)
        return TemplateLookup(ref=f"{resolved}#{index}", text=variants[index], is_fallback=is_fallback)

    def get_template(self, key: TemplateKey, variant_index: Optional[int] = None) -> str:
        return self.lookup(key, variant_index).text

    def require_template(self, key: TemplateKey, variant_index: Optional[int] = None) -> str:
        """Strict lookup for tooling: raises instead of falling back."""
        variants = self.variants(key)
        if not variants:
            raise TemplateNotFoundError(f"No template for {self.resolve_key(key)!r}")
        return variants[(variant_index or 0) % len(variants)]

    def random_template(self, key: TemplateKey, rng: random.Random) -> TemplateLookup:
        """The only randomized lookup; callers own and seed the generator."""
        variants = self.variants(key) or self.variants(FALLBACK_KEY)
        return self.lookup(key, rng.randrange(len(variants)))

    @staticmethod
    def render(text: str, **fields) -> str:
        """Substitute ${field} placeholders; unknown placeholders are left as-is."""
        return Template(text).safe_substitute({k: "" if v is None else str(v) for k, v in fields.items()})


@lru_cache(maxsize=1)
def get_sequence_library() -> SequenceLibrary:
    """Shared library over the bundled packs."""
    return SequenceLibrary()
