"""Tagged quota variants for optional counters.

Stock on an untracked product and usage on an uncapped discount code are
``Unlimited``; everything else is ``Limited(n)``. Domain logic branches on
the variant instead of on ``None``.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class Unlimited:
    def allows(self, amount: int) -> bool:  # noqa: ARG002
        return True


@dataclass(frozen=True)
class Limited:
    remaining: int

    def __post_init__(self):
        if self.remaining < 0:
            raise ValueError(f"Limited quota cannot be negative, got {self.remaining}")

    def allows(self, amount: int) -> bool:
        return self.remaining >= amount


Quota = Unlimited | Limited


def quota_from(value: int | None) -> Quota:
    """Build a quota from a nullable persisted counter."""
    return Unlimited() if value is None else Limited(value)
