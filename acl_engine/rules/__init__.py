"""
Rules package.

Defines the Rule model and the collaborator interfaces through which the
engine obtains rules, nodes and action validation.

Modules of interest:
- models: Rule and its persisted form RuleRecord.
- loaders: RuleLoader/NodeLoader/ActionValidator/RecordLoader protocols,
  plus in-memory and JSON file rule loaders.

Rule order as returned by a loader is significant: the first rule for an
exact role and action decides.
"""

from .models import Rule, RuleRecord
from .loaders import (
    ActionValidator,
    InMemoryRuleLoader,
    JSONFileRuleLoader,
    NodeLoader,
    RecordLoader,
    RuleLoader,
)

__all__ = [
    "Rule",
    "RuleRecord",
    "ActionValidator",
    "InMemoryRuleLoader",
    "JSONFileRuleLoader",
    "NodeLoader",
    "RecordLoader",
    "RuleLoader",
]
