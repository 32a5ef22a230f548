"""
Collaborator interfaces and rule loaders.
"""

from __future__ import annotations

import json
import threading
from collections import defaultdict
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Protocol, Sequence, Union, TYPE_CHECKING, runtime_checkable

from pydantic import ValidationError

from shared.errors import InvalidIdentifier, InvalidPolicyValue, StructuralConflict
from shared.logging import get_logger
from .models import Rule, RuleRecord

if TYPE_CHECKING:
    from ..hierarchy import HierarchyNode
    from ..registry import ACL


@runtime_checkable
class RuleLoader(Protocol):
    """Supplies the rules for an entity, in storage order."""

    def load_rules(self, entity_id: Any) -> List[Rule]:
        ...


@runtime_checkable
class NodeLoader(Protocol):
    """Materializes hierarchy nodes that the ACL does not know yet."""

    def load(self, node_id: Any, kind: type) -> Optional["HierarchyNode"]:
        ...


@runtime_checkable
class ActionValidator(Protocol):
    """Returns True for valid actions, or a string explaining the rejection."""

    def is_valid(self, action: str) -> Union[bool, str]:
        ...


@runtime_checkable
class RecordLoader(Protocol):
    """Loads the record behind an external id."""

    def load(self, kind: Any, key_parts: Sequence[str]) -> Any:
        ...


class InMemoryRuleLoader:
    """Rule loader backed by a dict of entity id -> rules."""

    def __init__(self, rules: Optional[Dict[Any, Iterable[Rule]]] = None):
        self._rules: Dict[Any, List[Rule]] = {}
        if rules:
            self.set_rules(rules)

    def set_rules(self, rules: Dict[Any, Iterable[Rule]]) -> "InMemoryRuleLoader":
        self._rules = {entity_id: list(entity_rules) for entity_id, entity_rules in rules.items()}
        return self

    def add_rule(self, rule: Rule) -> "InMemoryRuleLoader":
        """Append a rule under its own entity id."""
        self._rules.setdefault(rule.entity_id, []).append(rule)
        return self

    def load_rules(self, entity_id: Any) -> List[Rule]:
        return list(self._rules.get(entity_id, []))


class JSONFileRuleLoader:
    """
    Loads rules from a JSON document of the form::

        {"rules": [{"entity_id": "folder", "role_id": "EVERYONE",
                    "action": "READ", "policy": "ALLOW"}, ...]}

    Records are validated with RuleRecord and grouped per entity in file
    order. A missing file yields no rules.
    """

    def __init__(self, acl: "ACL", path: Union[str, Path]):
        self.acl = acl
        self._path = Path(path)
        self._lock = threading.Lock()
        self.logger = get_logger("acl.rule_loader")
        self._records = self._load()

    @property
    def path(self) -> Path:
        """Return the resolved path to the rules file."""
        return self._path

    def refresh(self) -> None:
        """Reload the rule records from disk.

        Entities keep their cached rules; call reset_rules() on them to pick
        up the new records.
        """
        records = self._load()
        with self._lock:
            self._records = records

    def load_rules(self, entity_id: Any) -> List[Rule]:
        with self._lock:
            records = list(self._records.get(entity_id, []))

        rules = []
        for record in records:
            rule = Rule(self.acl, record.entity_id, record.role_id, record.action, record.policy)
            rule.set_record(record)
            rules.append(rule)
        return rules

    def _load(self) -> Dict[Any, List[RuleRecord]]:
        if not self._path.exists():
            self.logger.warning("Rules file not found", path=str(self._path))
            return {}

        with self._path.open("r", encoding="utf-8") as handle:
            payload = json.load(handle)

        entries = payload.get("rules", []) if isinstance(payload, dict) else payload
        records: Dict[Any, List[RuleRecord]] = defaultdict(list)
        for index, entry in enumerate(entries):
            try:
                record = RuleRecord.model_validate(entry)
            except ValidationError as e:
                errors = e.errors(include_url=False, include_context=False)
                details = {"path": str(self._path), "index": index, "errors": errors}
                if any(error["loc"][:1] == ("policy",) for error in errors):
                    raise InvalidPolicyValue(f"Invalid policy in rule record at index {index}", details=details)
                raise InvalidIdentifier(f"Invalid rule record at index {index}", details=details)
            except (InvalidPolicyValue, StructuralConflict) as e:
                e.details.update(path=str(self._path), index=index)
                raise
            records[record.entity_id].append(record)

        self.logger.info("Rules file loaded", path=str(self._path), records=sum(len(r) for r in records.values()))
        return dict(records)
