"""Store representation of a single recorded attempt.

Each attempt is one member of the identifier's sorted set, scored by its
timestamp. The member string is ``"{timestamp}#{weight}#{nonce}"``; the nonce
only keeps two attempts recorded in the same millisecond from collapsing into
one member.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from typing import Iterable

SEPARATOR = "#"
NONCE_BYTES = 4


@dataclass(frozen=True)
class AttemptRecord:
    timestamp: int
    weight: int
    nonce: str

    @classmethod
    def new(cls, timestamp: int, weight: int) -> "AttemptRecord":
        return cls(timestamp=timestamp, weight=weight, nonce=secrets.token_hex(NONCE_BYTES))

    @property
    def score(self) -> int:
        return self.timestamp

    def encode(self) -> str:
        return f"{self.timestamp}{SEPARATOR}{self.weight}{SEPARATOR}{self.nonce}"

    @classmethod
    def decode(cls, member: str | bytes) -> "AttemptRecord":
        """Parse a stored member back into its timestamp, weight and nonce.

        Raises:
            ValueError: If the member was not produced by ``encode``.
        """
        if isinstance(member, bytes):
            member = member.decode("utf-8")
        timestamp, weight, nonce = member.split(SEPARATOR, 2)
        return cls(timestamp=int(timestamp), weight=int(weight), nonce=nonce)


def expand_timestamps(members: Iterable[str | bytes]) -> list[int]:
    """Expand score-ordered members into per-unit timestamps, most recent first.

    A weight-3 record stands for three simultaneous unit attempts and so
    contributes its timestamp three times.
    """

    timestamps: list[int] = []
    for member in members:
        record = AttemptRecord.decode(member)
        timestamps.extend([record.timestamp] * record.weight)
    timestamps.reverse()
    return timestamps
