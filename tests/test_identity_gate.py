"""Tests for the validator identity gate."""

from __future__ import annotations

import pytest

from conftest import FakeIdentityProvider
from core.domain.errors import ActiveIdentityBlocked, UnknownIdentity
from core.domain.models import ValidatorRole
from core.services.identity_gate import IdentityGate, classify_identity

ACTIVE = "ActiveKey1111111111111111111111111111111111"
PASSIVE = "PassiveKey111111111111111111111111111111111"


def _gate(reported: str, *, allow: bool = False) -> tuple[IdentityGate, FakeIdentityProvider]:
    provider = FakeIdentityProvider(reported)
    return IdentityGate(provider, active_key=ACTIVE, passive_key=PASSIVE, allow_sync_when_active=allow), provider


class TestClassify:
    def test_roles(self):
        assert classify_identity(ACTIVE, ACTIVE, PASSIVE) is ValidatorRole.ACTIVE
        assert classify_identity(PASSIVE, ACTIVE, PASSIVE) is ValidatorRole.PASSIVE
        assert classify_identity("Other", ACTIVE, PASSIVE) is ValidatorRole.UNKNOWN


class TestIdentityGate:
    """Decision table: unknown / active blocked / active allowed / passive."""

    @pytest.mark.asyncio
    async def test_unknown_identity_blocks(self):
        gate, _ = _gate("SomebodyElse")
        with pytest.raises(UnknownIdentity) as excinfo:
            await gate.check()
        assert excinfo.value.identity == "SomebodyElse"

    @pytest.mark.asyncio
    async def test_active_blocked_by_default(self):
        gate, _ = _gate(ACTIVE)
        with pytest.raises(ActiveIdentityBlocked):
            await gate.check()

    @pytest.mark.asyncio
    async def test_active_allowed_logs_warning(self, caplog):
        gate, _ = _gate(ACTIVE, allow=True)
        with caplog.at_level("WARNING", logger="doublezero_version_sync"):
            role = await gate.check()
        assert role is ValidatorRole.ACTIVE
        assert any("active identity" in r.getMessage() for r in caplog.records)

    @pytest.mark.asyncio
    async def test_passive_proceeds(self):
        gate, _ = _gate(PASSIVE)
        assert await gate.check() is ValidatorRole.PASSIVE

    @pytest.mark.asyncio
    async def test_identity_fetched_every_check(self):
        gate, provider = _gate(PASSIVE)
        await gate.check()
        await gate.check()
        assert provider.calls == 2

    def test_identical_keys_rejected(self):
        with pytest.raises(ValueError):
            IdentityGate(FakeIdentityProvider(ACTIVE), active_key=ACTIVE, passive_key=ACTIVE)
