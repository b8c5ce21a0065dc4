"""Account model used for ownership and upload attribution."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, eq=False)
class User:
    """A registry account.

    ``key`` is the opaque, stable account identifier. Every ownership
    comparison goes through it; ``username`` is display only.
    """

    key: str
    username: str = ""
    email: str = ""

    def __post_init__(self) -> None:
        if not self.key:
            raise ValueError("User key must not be empty")
        if not self.username:
            object.__setattr__(self, "username", self.key)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, User):
            return NotImplemented
        return self.key == other.key

    def __hash__(self) -> int:
        return hash(self.key)
