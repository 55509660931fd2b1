"""
Rule Packs
Versioned, declarative pattern tables consumed by the classifiers.
"""
from closer.rules.loader import RulePack, RuleSpec, RuleMatch, load_rule_pack

__all__ = [
    "RulePack",
    "RuleSpec",
    "RuleMatch",
    "load_rule_pack",
]
