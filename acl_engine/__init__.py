"""
Hierarchical access-control policy engine.

Answers "may this Role perform this action on this Entity?" by combining
explicit rules with inheritance through two hierarchies: roles
(user -> group -> EVERYONE) and entities (file -> folder -> EVERYTHING).

- registry: the ACL, owning nodes, policy settings and collaborators.
- hierarchy: Role and Entity graphs, and policy resolution.
- rules: the Rule model and rule loaders.
- policy: Policy values and parsing.
- identifiers: "<Kind>#<key>" external ids.

Guidelines:
- One ACL per access-control domain; tests build their own.
- Rule order from the loader is significant.
"""

from .policy import Policy, READ, WRITE
from .hierarchy import Entity, HierarchyNode, Role
from .rules import InMemoryRuleLoader, JSONFileRuleLoader, Rule, RuleRecord
from .registry import ACL

__all__ = [
    "ACL",
    "Entity",
    "HierarchyNode",
    "InMemoryRuleLoader",
    "JSONFileRuleLoader",
    "Policy",
    "READ",
    "Role",
    "Rule",
    "RuleRecord",
    "WRITE",
]
