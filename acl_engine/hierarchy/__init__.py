"""
Role and Entity hierarchies.

Both hierarchies share the HierarchyNode graph primitive: lazily resolved
parents, breadth-first ancestry distances, and a root node per kind.

Modules of interest:
- node: HierarchyNode and identifier validation.
- role: Role, rooted at EVERYONE.
- entity: Entity, rooted at EVERYTHING, with policy resolution.
"""

from .node import HierarchyNode, validate_identifier
from .role import Role
from .entity import Entity

__all__ = ["HierarchyNode", "validate_identifier", "Role", "Entity"]
