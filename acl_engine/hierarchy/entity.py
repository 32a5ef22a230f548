"""
Entities: protected objects, and the policy-resolution algorithm.
"""

from typing import Any, FrozenSet, List, Optional, TYPE_CHECKING

from shared.logging import get_logger
from ..policy import Policy
from .node import HierarchyNode
from .role import Role

if TYPE_CHECKING:
    from ..rules.loaders import NodeLoader
    from ..rules.models import Rule

logger = get_logger("acl.entity")


class Entity(HierarchyNode):
    """
    An object or class of objects that rules can be applied to.

    Every Entity descends from EVERYTHING, the root entity. Rules are
    loaded through the ACL's rule loader on first use and cached until
    reset_rules() is called.
    """

    KIND = "Entity"
    ROOT = "EVERYTHING"

    def __init__(self, acl, node_id, parents: Any = None):
        self._rules: Optional[List["Rule"]] = None
        super().__init__(acl, node_id, parents)

    def get_rules(self) -> List["Rule"]:
        """Return the rules for this Entity, in storage order."""
        if self._rules is None:
            with self.acl.lock:
                if self._rules is None:
                    self._rules = list(self.acl.load_rules(self.id))
        return self._rules

    def reset_rules(self) -> "Entity":
        """Drop the cached rules so the next query reloads them."""
        self._rules = None
        return self

    def is_allowed(self, role: Any, action: str, loader: Optional["NodeLoader"] = None) -> bool:
        """
        Answer the question: may role perform action on this Entity?

        When no rule gives a definitive answer, the ACL's default policy
        applies.
        """
        with self.acl.time_resolution():
            policy = self.get_policy(role, action, loader)
        if policy == Policy.UNDEFINED:
            policy = self.acl.default_policy

        self.acl.record_decision(policy)
        return policy == Policy.ALLOW

    def get_policy(self, role: Any, action: str, loader: Optional["NodeLoader"] = None) -> Policy:
        """
        Find the policy for role performing action on this Entity.

        Rules on this Entity are considered first. A rule for exactly this
        role is definitive; otherwise the rule for the closest ancestor role
        wins, with ties going to the preferred policy. When no rule applies,
        the parent entities are consulted unless a NOINHERIT rule is
        present. Returns UNDEFINED when nothing decides the question.
        """
        role = self.acl.resolve_node(Role, role, loader)
        return self._resolve(role, action, loader, frozenset())

    def _resolve(self, role: Role, action: str, loader: Optional["NodeLoader"],
                 visiting: FrozenSet[Any]) -> Policy:
        preferred = self.acl.preferred_policy
        visiting = visiting | {self.id}

        inherit = True
        best_rule = None
        best_distance = None
        for rule in self.get_rules():
            if rule.policy == Policy.NOINHERIT:
                inherit = False
                continue

            if rule.policy == Policy.INHERIT:
                continue

            if rule.action != action:
                continue

            rule_role = rule.get_role(loader)
            if rule_role is None:
                logger.warning(
                    "Rule without a role ignored",
                    entity_id=self.id,
                    action=action,
                    policy=rule.policy.name
                )
                continue

            if rule_role.same_as(role):
                logger.debug(
                    "Exact role match",
                    entity_id=self.id,
                    role_id=role.id,
                    action=action,
                    policy=rule.policy.name
                )
                return rule.policy

            distance = rule_role.is_ancestor_of(role, loader)
            if not distance:
                continue

            if (
                best_distance is None or
                distance < best_distance or
                (distance == best_distance and rule.policy == preferred)
            ):
                best_rule = rule
                best_distance = distance

        if best_rule is not None:
            logger.debug(
                "Ancestor role match",
                entity_id=self.id,
                role_id=role.id,
                ancestor_id=best_rule.role_id,
                distance=best_distance,
                policy=best_rule.policy.name
            )
            return best_rule.policy

        if not inherit or not self.has_parents():
            return Policy.UNDEFINED

        # One parent yielding the preferred policy decides for this Entity;
        # otherwise the last parent's answer stands.
        policy = Policy.UNDEFINED
        for parent in self.get_parents(loader):
            if parent.id in visiting:
                logger.warning("Entity cycle detected", entity_id=self.id, parent_id=parent.id)
                continue
            policy = parent._resolve(role, action, loader, visiting)
            if policy == preferred:
                return policy

        return policy
