"""
Parent/child graph primitive shared by Roles and Entities.
"""

from collections import deque
from typing import Any, Dict, Iterable, List, Optional, Union, TYPE_CHECKING

from shared.errors import DuplicateNode, InvalidIdentifier

if TYPE_CHECKING:
    from ..registry import ACL
    from ..rules.loaders import NodeLoader

NodeID = Union[str, int]


def validate_identifier(value: Any, kind: str = "Element") -> NodeID:
    """Check that value can serve as a node id."""
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        raise InvalidIdentifier(f"{kind}-ID must be a scalar", details={"value": repr(value)})
    if value == "":
        raise InvalidIdentifier(f"{kind}-ID must not be empty")
    return value


class HierarchyNode:
    """
    A node in a parent/child hierarchy.

    Every node except the root of its kind has one or more parents. A node
    without explicit parents is attached to the root. Parents are stored by
    id and resolved to live nodes through the owning ACL on first use.

    Subclasses define KIND (used in messages) and ROOT (the root id).
    """

    KIND = "Element"
    ROOT: NodeID = "ROOT"

    def __init__(self, acl: "ACL", node_id: NodeID, parents: Any = None):
        validate_identifier(node_id, self.KIND)
        self.acl = acl
        self._id = node_id
        self._parents: Dict[NodeID, Optional["HierarchyNode"]] = {}

        with acl.lock:
            if acl.has_instance(type(self), node_id):
                raise DuplicateNode(self.KIND, node_id)
            self.set_parents(parents)
            acl.set_instance(self)

    @property
    def id(self) -> NodeID:
        return self._id

    @property
    def is_root(self) -> bool:
        return self._id == self.ROOT

    @property
    def parent_ids(self) -> List[NodeID]:
        """Ids of the parents, in declaration order."""
        return list(self._parents)

    def has_parents(self) -> bool:
        return bool(self._parents)

    def same_as(self, other: "HierarchyNode") -> bool:
        """True when other is the same kind of node with the same id."""
        return type(self) is type(other) and self._id == other._id

    def set_parents(self, parents: Union[None, NodeID, "HierarchyNode", Iterable[Any]]) -> "HierarchyNode":
        """Replace the parents of this node by one or more ids or nodes."""
        if parents is None:
            parents = []
        elif isinstance(parents, (str, int, HierarchyNode)):
            parents = [parents]

        resolved: Dict[NodeID, Optional[HierarchyNode]] = {}
        for parent in parents:
            if isinstance(parent, HierarchyNode):
                if type(parent) is not type(self):
                    raise InvalidIdentifier(
                        f"Parent-ID must be a {self.KIND} object or a scalar",
                        details={"parent_kind": parent.KIND}
                    )
                resolved[parent.id] = parent
            else:
                resolved[validate_identifier(parent, "Parent")] = None

        if not resolved and not self.is_root:
            resolved[self.ROOT] = None

        self._parents = resolved
        return self

    def get_parents(self, loader: Optional["NodeLoader"] = None) -> List["HierarchyNode"]:
        """Resolve and return the parent nodes, in declaration order.

        Unknown parents are materialized through loader when one is given,
        otherwise UnknownElement is raised.
        """
        parents = []
        for parent_id, parent in list(self._parents.items()):
            if parent is None:
                parent = self.acl.resolve_node(type(self), parent_id, loader)
                self._parents[parent_id] = parent
            parents.append(parent)
        return parents

    def is_offspring_of(self, other: "HierarchyNode", loader: Optional["NodeLoader"] = None) -> Optional[int]:
        """Return the number of generations between this node and ancestor other.

        Returns 1 for a direct parent, 0 when other is this node, and None
        when the nodes are unrelated or of different kinds.
        """
        if type(other) is not type(self):
            return None
        if other.id == self._id:
            return 0

        queue = deque((1, parent) for parent in self.get_parents(loader))
        seen = {self._id}
        while queue:
            level, current = queue.popleft()
            if current.id == other.id:
                return level
            if current.id in seen:
                continue
            seen.add(current.id)

            for parent in current.get_parents(loader):
                if parent.id not in seen:
                    queue.append((level + 1, parent))

        return None

    def is_ancestor_of(self, other: "HierarchyNode", loader: Optional["NodeLoader"] = None) -> Optional[int]:
        """Return the number of generations between this node and offspring other."""
        if type(other) is not type(self):
            return None
        return other.is_offspring_of(self, loader)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._id!r})"
