"""Auth-related enums."""

from enum import Enum


class Role(str, Enum):
    """Account role."""

    ADMIN = "admin"
    USER = "user"

    @classmethod
    def has_value(cls, value: str) -> bool:
        return value in cls._value2member_map_
