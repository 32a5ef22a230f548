"""
Policy values for ACL rules and query results.
"""

from enum import IntEnum
from typing import Union

from shared.errors import InvalidPolicyValue

# Common action names
READ = "READ"
WRITE = "WRITE"


class Policy(IntEnum):
    """Policy outcomes.

    - DENY / ALLOW: definitive answers
    - NOINHERIT: disables inheritance from parent entities
    - INHERIT: explicit marker that the entity defers to its parents
    - UNDEFINED: result only, no applicable rule gave an answer
    """
    DENY = 0
    ALLOW = 1
    NOINHERIT = 2
    INHERIT = 3
    UNDEFINED = 4

    @classmethod
    def from_string(cls, value: str, explicit: bool = True) -> "Policy":
        """Parse a policy name, trimmed and case-insensitive.

        In explicit mode only ALLOW and DENY are accepted.
        """
        if not isinstance(value, str):
            raise InvalidPolicyValue(f"Policy must be a string, got {type(value).__name__}")

        name = value.strip().upper()
        valid = ("ALLOW", "DENY") if explicit else tuple(p.name for p in cls)
        if name not in valid:
            raise InvalidPolicyValue(
                f"Invalid policy: {value!r}. Valid policies: {list(valid)}",
                details={"value": value, "explicit": explicit}
            )
        return cls[name]

    @classmethod
    def coerce(cls, value: Union["Policy", int, str], explicit: bool = False) -> "Policy":
        """Convert a Policy, its integer value or its name to a Policy."""
        if isinstance(value, str):
            return cls.from_string(value, explicit=explicit)

        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidPolicyValue(f"Invalid policy: {value!r}")

        try:
            policy = cls(value)
        except ValueError:
            raise InvalidPolicyValue(f"Invalid policy: {value!r}")

        if explicit and policy not in (cls.ALLOW, cls.DENY):
            raise InvalidPolicyValue(f"Policy should be either ALLOW or DENY, got {policy.name}")
        return policy
