"""Vector store capability and id policy definitions."""

from __future__ import annotations

from enum import Enum

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1


class VectorIdPolicy(str, Enum):
    """Primary key range accepted by a vector backend."""

    INT64 = "int64"
    UINT64 = "uint64"

    def accepts(self, value: int) -> bool:
        if self == VectorIdPolicy.UINT64:
            return 0 <= value <= INT64_MAX
        return INT64_MIN <= value <= INT64_MAX
