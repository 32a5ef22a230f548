"""
Roles: users and groups of users to which rules apply.
"""

from .node import HierarchyNode


class Role(HierarchyNode):
    """
    A user or group of users. Every Role descends from EVERYONE, the root
    role, so a rule for EVERYONE applies to all roles.
    """

    KIND = "Role"
    ROOT = "EVERYONE"
