"""
Rule data models for the ACL engine.
"""

from typing import Any, Optional, Union, TYPE_CHECKING

from pydantic import BaseModel, Field, field_validator, model_validator

from shared.errors import InvalidIdentifier, InvalidPolicyValue, StructuralConflict
from ..hierarchy import Entity, HierarchyNode, Role, validate_identifier
from ..policy import Policy

if TYPE_CHECKING:
    from ..registry import ACL
    from .loaders import NodeLoader


class RuleRecord(BaseModel):
    """Persisted form of a rule."""
    entity_id: Union[int, str] = Field(..., description="Entity the rule applies to")
    role_id: Optional[Union[int, str]] = Field(None, description="Role the rule applies to")
    action: str = Field("", description="Action governed by the rule")
    policy: Policy = Field(..., description="Policy value")

    @field_validator("policy", mode="before")
    @classmethod
    def _parse_policy(cls, value: Any) -> Policy:
        try:
            return Policy.coerce(value)
        except InvalidPolicyValue as e:
            raise ValueError(e.message)

    @model_validator(mode="after")
    def _check_structure(self) -> "RuleRecord":
        # Same invariants as Rule; raised as-is, pydantic does not wrap them
        if self.policy == Policy.UNDEFINED:
            raise InvalidPolicyValue("Policy must be either ALLOW, DENY, INHERIT or NOINHERIT")

        if self.policy == Policy.NOINHERIT:
            if self.action:
                raise StructuralConflict("NOINHERIT can not be used in combination with an action")
            if self.role_id is not None and self.role_id != "":
                raise StructuralConflict("NOINHERIT can not be used in combination with a role")
        return self


class Rule:
    """
    A policy statement relating one Role to one Entity for one action.

    Entity and role may be given as objects or ids; objects are resolved
    lazily through the ACL. NOINHERIT rules carry neither a role nor an
    action. The changed flag tracks modifications after construction.
    """

    def __init__(self, acl: "ACL", entity: Any, role: Any, action: Optional[str], policy: Union[Policy, int, str]):
        self.acl = acl
        self._entity_id = None
        self._entity: Optional[Entity] = None
        self._role_id = None
        self._role: Optional[Role] = None
        self._action: Optional[str] = None
        self._policy: Optional[Policy] = None
        self._record: Any = None

        self.set_entity(entity)
        self.set_role(role)
        self.set_action(action)
        self.set_policy(policy)
        self._changed = False

    @property
    def entity_id(self):
        return self._entity_id

    @property
    def role_id(self):
        return self._role_id

    @property
    def action(self) -> str:
        return self._action

    @property
    def policy(self) -> Policy:
        return self._policy

    @property
    def changed(self) -> bool:
        return self._changed

    def set_entity(self, entity: Any) -> "Rule":
        """Set the Entity this rule applies to, by object or id."""
        entity_obj = None
        if isinstance(entity, Entity):
            entity_obj = entity
            entity_id = entity.id
        elif isinstance(entity, HierarchyNode):
            raise InvalidIdentifier("Entity-ID must be an Entity or a scalar")
        else:
            entity_id = validate_identifier(entity, "Entity")

        if entity_id != self._entity_id:
            self._entity_id = entity_id
            self._entity = entity_obj
            self._changed = True
        elif entity_obj is not None:
            self._entity = entity_obj
        return self

    def set_role(self, role: Any) -> "Rule":
        """Set the Role this rule applies to, by object or id. None or "" clears it."""
        role_obj = None
        if isinstance(role, Role):
            role_obj = role
            role_id = role.id
        elif role is None or role == "":
            role_id = None
        elif isinstance(role, HierarchyNode):
            raise InvalidIdentifier("Role-ID must be a Role or a scalar")
        else:
            role_id = validate_identifier(role, "Role")

        if role_id is not None and self._policy == Policy.NOINHERIT:
            raise StructuralConflict("NOINHERIT can not be used in combination with a role")

        if role_id != self._role_id:
            self._role_id = role_id
            self._role = role_obj
            self._changed = True
        elif role_obj is not None:
            self._role = role_obj
        return self

    def set_action(self, action: Optional[str]) -> "Rule":
        """Set the action; non-empty actions pass through the ACL's validator."""
        if action is None:
            action = ""
        if not isinstance(action, str):
            raise InvalidIdentifier("Action must be a string", details={"value": repr(action)})

        if action and self._policy == Policy.NOINHERIT:
            raise StructuralConflict("NOINHERIT can not be used in combination with an action")

        if action != self._action:
            if action:
                self.acl.validate_action(action)
            self._action = action
            self._changed = True
        return self

    def set_policy(self, policy: Union[Policy, int, str]) -> "Rule":
        """Set the policy: ALLOW, DENY, INHERIT or NOINHERIT."""
        policy = Policy.coerce(policy)
        if policy == Policy.UNDEFINED:
            raise InvalidPolicyValue("Policy must be either ALLOW, DENY, INHERIT or NOINHERIT")

        if policy == Policy.NOINHERIT and self._action:
            raise StructuralConflict("NOINHERIT can not be used in combination with an action")

        if policy == Policy.NOINHERIT and self._role_id is not None:
            raise StructuralConflict("NOINHERIT can not be used in combination with a role")

        if policy != self._policy:
            self._policy = policy
            self._changed = True
        return self

    def get_entity(self, loader: Optional["NodeLoader"] = None) -> Entity:
        """Return the Entity object, resolving it on first access."""
        if self._entity is None:
            self._entity = self.acl.resolve_node(Entity, self._entity_id, loader)
        return self._entity

    def get_role(self, loader: Optional["NodeLoader"] = None) -> Optional[Role]:
        """Return the Role object, or None for rules without a role."""
        if self._role is None and self._role_id is not None:
            self._role = self.acl.resolve_node(Role, self._role_id, loader)
        return self._role

    def get_record(self) -> Any:
        """Return the external record this rule was built from."""
        return self._record

    def set_record(self, record: Any) -> "Rule":
        self._record = record
        return self

    def to_record(self) -> RuleRecord:
        """Convert to the persisted form."""
        return RuleRecord(
            entity_id=self._entity_id,
            role_id=self._role_id,
            action=self._action,
            policy=self._policy
        )

    def __repr__(self) -> str:
        return (
            f"Rule(entity={self._entity_id!r}, role={self._role_id!r}, "
            f"action={self._action!r}, policy={self._policy.name})"
        )
