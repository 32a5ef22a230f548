"""
ACL registry: node instances, policy configuration and collaborators.
"""

import threading
from contextlib import nullcontext
from typing import Any, Dict, List, Optional, Sequence, Type, Union

from shared.config import ACLSettings, get_config
from shared.errors import (
    DuplicateNode,
    DuplicateRegistration,
    InvalidIdentifier,
    InvalidPolicyValue,
    LoaderNotConfigured,
    UnknownElement,
    ValidationFailed,
)
from shared.logging import configure_logging, get_logger
from shared.metrics import ACLMetrics
from .hierarchy import Entity, HierarchyNode, Role, validate_identifier
from .identifiers import compose_external_id, split_external_id
from .policy import Policy
from .rules.loaders import ActionValidator, JSONFileRuleLoader, NodeLoader, RecordLoader, RuleLoader
from .rules.models import Rule

PolicyInput = Union[Policy, int, str]


class ACL:
    """
    The single source of truth for an access-control domain.

    Holds every live Role and Entity by kind and id, the default and
    preferred policies, the action validator and the rule and record
    loaders. Nodes consult it to resolve their parents and rules.
    """

    def __init__(self,
                 rule_loader: Optional[RuleLoader] = None,
                 default_policy: PolicyInput = Policy.DENY,
                 preferred_policy: PolicyInput = Policy.ALLOW,
                 action_validator: Optional[ActionValidator] = None,
                 record_loader: Optional[RecordLoader] = None,
                 metrics: Optional[ACLMetrics] = None):
        self.logger = get_logger("acl.registry")
        self.lock = threading.RLock()
        self.rule_loader = rule_loader
        self.action_validator = action_validator
        self.record_loader = record_loader
        self.metrics = metrics

        self._instances: Dict[type, Dict[Any, HierarchyNode]] = {}
        self._classes: Dict[str, Any] = {}
        self._class_names: Dict[Any, str] = {}

        self._default_policy = Policy.DENY
        self._preferred_policy = Policy.ALLOW
        self.default_policy = default_policy
        self.preferred_policy = preferred_policy

    @classmethod
    def from_settings(cls, settings: Optional[ACLSettings] = None,
                      rule_loader: Optional[RuleLoader] = None) -> "ACL":
        """Build an ACL from configuration.

        Logging is configured at settings.log_level before the ACL logs
        anything. When no rule loader is passed and settings name a rules
        file, the rules are read from that file.
        """
        settings = settings or get_config()
        configure_logging("acl-engine", settings.log_level)
        acl = cls(
            default_policy=settings.default_policy,
            preferred_policy=settings.preferred_policy,
            metrics=ACLMetrics() if settings.enable_metrics else None,
        )
        if rule_loader is None and settings.rules_file:
            rule_loader = JSONFileRuleLoader(acl, settings.rules_file)
        acl.rule_loader = rule_loader
        return acl

    # Policy configuration

    @staticmethod
    def _explicit_policy(policy: PolicyInput, setting: str) -> Policy:
        try:
            return Policy.coerce(policy, explicit=True)
        except InvalidPolicyValue:
            raise InvalidPolicyValue(
                f"{setting} policy should be either ALLOW or DENY",
                details={"value": repr(policy)}
            )

    @property
    def default_policy(self) -> Policy:
        """The policy applied when no rule gives a definitive answer."""
        return self._default_policy

    @default_policy.setter
    def default_policy(self, policy: PolicyInput):
        self._default_policy = self._explicit_policy(policy, "Default")
        self.logger.info("Default policy set", policy=self._default_policy.name)

    @property
    def preferred_policy(self) -> Policy:
        """The policy that wins ties between rules and between parents."""
        return self._preferred_policy

    @preferred_policy.setter
    def preferred_policy(self, policy: PolicyInput):
        self._preferred_policy = self._explicit_policy(policy, "Preferred")
        self.logger.info("Preferred policy set", policy=self._preferred_policy.name)

    def validate_action(self, action: str) -> None:
        """Run the action validator, if one is configured."""
        if self.action_validator is None:
            return

        result = self.action_validator.is_valid(action)
        if result is not True:
            reason = result if isinstance(result, str) else "rejected"
            raise ValidationFailed(reason, details={"action": action})

    # Node instances

    def get_instance(self, kind: Type[HierarchyNode], node_id: Any) -> HierarchyNode:
        """Return the live node of kind with node_id.

        A node of kind is returned as is. The root of kind is created on
        first reference; any other unknown id raises UnknownElement.
        """
        if isinstance(node_id, kind):
            return node_id
        if isinstance(node_id, HierarchyNode):
            raise InvalidIdentifier(f"{kind.KIND}-ID must be a scalar")
        validate_identifier(node_id, kind.KIND)

        with self.lock:
            instances = self._instances.get(kind, {})
            if node_id in instances:
                return instances[node_id]

            if node_id == kind.ROOT:
                self.logger.debug("Creating root node", kind=kind.KIND, node_id=node_id)
                return kind(self, node_id)

        raise UnknownElement(f"{kind.KIND}-ID {node_id} is unknown", details={"kind": kind.KIND, "id": node_id})

    def has_instance(self, kind: Type[HierarchyNode], node_id: Any) -> bool:
        return node_id in self._instances.get(kind, {})

    def set_instance(self, node: HierarchyNode) -> HierarchyNode:
        """Register node; another live node with the same kind and id is an error."""
        with self.lock:
            instances = self._instances.setdefault(type(node), {})
            existing = instances.get(node.id)
            if existing is not None and existing is not node:
                raise DuplicateNode(node.KIND, node.id)
            instances[node.id] = node

        self.logger.debug("Node registered", kind=node.KIND, node_id=node.id)
        return node

    def resolve_node(self, kind: Type[HierarchyNode], node_id: Any,
                     loader: Optional[NodeLoader] = None) -> HierarchyNode:
        """Look up a node, asking loader to materialize it when unknown."""
        if loader is not None and not isinstance(node_id, HierarchyNode):
            validate_identifier(node_id, kind.KIND)
            with self.lock:
                if not self.has_instance(kind, node_id) and node_id != kind.ROOT:
                    node = loader.load(node_id, kind)
                    if isinstance(node, kind) and not self.has_instance(kind, node.id):
                        self.set_instance(node)
        return self.get_instance(kind, node_id)

    def get_root(self, kind: Type[HierarchyNode]) -> HierarchyNode:
        return self.get_instance(kind, kind.ROOT)

    def clear_cache(self, kind: Optional[Type[HierarchyNode]] = None) -> None:
        """Forget all nodes of kind, or of every kind."""
        with self.lock:
            if kind is None:
                self._instances.clear()
            else:
                self._instances.pop(kind, None)
        self.logger.info("Node cache cleared", kind=kind.KIND if kind else "all")

    def create_role(self, role_id: Any, parents: Any = None) -> Role:
        return Role(self, role_id, parents)

    def create_entity(self, entity_id: Any, parents: Any = None) -> Entity:
        return Entity(self, entity_id, parents)

    def get_role(self, role_id: Any) -> Role:
        return self.get_instance(Role, role_id)

    def get_entity(self, entity_id: Any) -> Entity:
        return self.get_instance(Entity, entity_id)

    # Rules and queries

    def load_rules(self, entity_id: Any) -> List[Rule]:
        """Fetch the rules for an entity from the rule loader."""
        if self.rule_loader is None:
            raise LoaderNotConfigured("You need to set the rule loader before loading rules")

        rules = self.rule_loader.load_rules(entity_id)
        if self.metrics is not None:
            self.metrics.record_rule_load()
        self.logger.debug("Rules loaded", entity_id=entity_id, count=len(rules))
        return rules

    def get_policy(self, role: Any, entity: Any, action: str,
                   loader: Optional[NodeLoader] = None) -> Policy:
        """Resolve the policy for role performing action on entity."""
        entity = self.resolve_node(Entity, entity, loader)
        return entity.get_policy(role, action, loader)

    def is_allowed(self, role: Any, entity: Any, action: str,
                   loader: Optional[NodeLoader] = None) -> bool:
        """Check whether role may perform action on entity."""
        entity = self.resolve_node(Entity, entity, loader)
        return entity.is_allowed(role, action, loader)

    def record_decision(self, policy: Policy) -> None:
        if self.metrics is not None:
            self.metrics.record_decision(policy.name)

    def time_resolution(self):
        if self.metrics is None:
            return nullcontext()
        return self.metrics.time_resolution()

    # External identifiers

    def register_class(self, name: str, kind: Any) -> "ACL":
        """Map a kind name used in external ids to a record kind."""
        if not isinstance(name, str) or not name or "#" in name:
            raise InvalidIdentifier(f"Invalid kind name: {name!r}")

        with self.lock:
            if name in self._classes:
                raise DuplicateRegistration("Cannot register the same name twice", details={"name": name})
            if kind in self._class_names:
                raise DuplicateRegistration(
                    "Cannot register the same kind twice",
                    details={"name": name, "registered_as": self._class_names[kind]}
                )
            self._classes[name] = kind
            self._class_names[kind] = name

        self.logger.info("Kind registered", name=name)
        return self

    def get_class(self, name: str) -> Any:
        if name not in self._classes:
            raise UnknownElement(f"Invalid kind name: {name}", details={"name": name})
        return self._classes[name]

    def get_class_name(self, kind: Any) -> str:
        if kind not in self._class_names:
            raise UnknownElement(f"Kind is not registered: {kind!r}")
        return self._class_names[kind]

    def generate_external_id(self, kind: Any, key: Union[str, int, Sequence[Any]]) -> str:
        """Compose the external id for the record of kind identified by key."""
        return compose_external_id(self.get_class_name(kind), key)

    def load_by_external_id(self, external_id: str) -> Any:
        """Load the record behind an external id through the record loader."""
        kind_name, key_parts = split_external_id(external_id)
        kind = self.get_class(kind_name)

        if self.record_loader is None:
            raise LoaderNotConfigured("You need to set the record loader before loading records")

        return self.record_loader.load(kind, key_parts)
