"""Tests for the cross-process instance lock."""

from __future__ import annotations

import os

import pytest

from adapters.instance_lock import InstanceLock
from core.domain.errors import InstanceLockHeld


class TestInstanceLock:
    def test_writes_pid_and_releases(self, tmp_path):
        path = tmp_path / "run" / "sync.lock"
        with InstanceLock(path):
            assert path.read_text().strip() == str(os.getpid())
        with InstanceLock(path):
            pass

    def test_second_holder_fails_fast(self, tmp_path):
        path = tmp_path / "sync.lock"
        first = InstanceLock(path)
        first.acquire()
        try:
            with pytest.raises(InstanceLockHeld):
                InstanceLock(path).acquire()
        finally:
            first.release()

    def test_release_is_idempotent(self, tmp_path):
        lock = InstanceLock(tmp_path / "sync.lock")
        lock.acquire()
        lock.release()
        lock.release()

    def test_unusable_path_is_a_domain_error(self, tmp_path):
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("")
        with pytest.raises(InstanceLockHeld, match="cannot open sync lock"):
            InstanceLock(blocker / "sync.lock").acquire()
