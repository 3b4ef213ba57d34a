"""Cluster names known to doublezero-version-sync.

Clusters live in the domain layer so the config, the version source and the
CLI share one definition. Declaration order matters: it is the positional
order in which the documentation lists install commands.
"""

from __future__ import annotations

from enum import Enum


class Cluster(str, Enum):
    """Supported DoubleZero clusters."""

    MAINNET_BETA = "mainnet-beta"
    TESTNET = "testnet"

    @classmethod
    def names(cls) -> list[str]:
        """Return cluster names in documentation order."""

        return [c.value for c in cls]

    @classmethod
    def from_name(cls, name: str) -> "Cluster":
        """Lookup tolerant to case and surrounding whitespace."""

        value = (name or "").strip().lower()
        for cluster in cls:
            if cluster.value == value:
                return cluster
        raise ValueError(f"invalid cluster name: {name} - must be one of {', '.join(cls.names())}")
