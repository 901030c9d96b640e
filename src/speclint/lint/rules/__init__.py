"""Style rules for spec files.

Each rule is independent: it receives the whole parsed tree and returns
its own findings. The engine decides which rules run and with which
severity.
"""

from typing import Dict

from .base import Rule, RuleContext
from .context_mutation import ContextMutationRule
from .flat_example import FlatExampleRule
from .manual_change import ManualChangeCaptureRule
from .single_level_context import SingleLevelContextRule
from .unnamed_subject import UnnamedSubjectRule

FLAT_EXAMPLE = FlatExampleRule.id
SINGLE_LEVEL_CONTEXT = SingleLevelContextRule.id
UNNAMED_SUBJECT = UnnamedSubjectRule.id
CONTEXT_MUTATION = ContextMutationRule.id
MANUAL_CHANGE_CAPTURE = ManualChangeCaptureRule.id

# Registry keyed by rule id, in id order
RULES: Dict[str, Rule] = {
    rule.id: rule
    for rule in sorted(
        (
            FlatExampleRule(),
            SingleLevelContextRule(),
            UnnamedSubjectRule(),
            ContextMutationRule(),
            ManualChangeCaptureRule(),
        ),
        key=lambda r: r.id,
    )
}

__all__ = [
    "Rule",
    "RuleContext",
    "RULES",
    "FLAT_EXAMPLE",
    "SINGLE_LEVEL_CONTEXT",
    "UNNAMED_SUBJECT",
    "CONTEXT_MUTATION",
    "MANUAL_CHANGE_CAPTURE",
    "ContextMutationRule",
    "FlatExampleRule",
    "ManualChangeCaptureRule",
    "SingleLevelContextRule",
    "UnnamedSubjectRule",
]
