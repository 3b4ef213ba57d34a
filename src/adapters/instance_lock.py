"""Lock entre procesos para la fase de ejecución de comandos.

Evita que dos instancias (p.ej. un timer de systemd y un `run` manual)
ejecuten instalaciones a la vez sobre el mismo host. Usa `flock` no bloqueante:
si otra instancia tiene el lock, el ciclo falla en lugar de esperar.
"""

from __future__ import annotations

import fcntl
import os
from pathlib import Path
from types import TracebackType

from core.domain.errors import InstanceLockHeld
from core.log_setup import get_logger

logger = get_logger("lock")


class InstanceLock:
    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._fd: int | None = None

    @property
    def path(self) -> Path:
        return self._path

    def acquire(self) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(self._path, os.O_RDWR | os.O_CREAT, 0o644)
        except OSError as exc:
            raise InstanceLockHeld(f"cannot open sync lock {self._path}: {exc}") from exc
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError as exc:
            os.close(fd)
            raise InstanceLockHeld(f"another instance holds the sync lock {self._path}") from exc
        except OSError as exc:
            os.close(fd)
            raise InstanceLockHeld(f"cannot lock {self._path}: {exc}") from exc
        self._fd = fd
        try:
            os.ftruncate(fd, 0)
            os.write(fd, f"{os.getpid()}\n".encode())
        except OSError as exc:
            self.release()
            raise InstanceLockHeld(f"cannot write sync lock {self._path}: {exc}") from exc
        logger.debug("acquired sync lock path=%s", self._path)

    def release(self) -> None:
        if self._fd is None:
            return
        try:
            fcntl.flock(self._fd, fcntl.LOCK_UN)
        finally:
            os.close(self._fd)
            self._fd = None
        logger.debug("released sync lock path=%s", self._path)

    def __enter__(self) -> "InstanceLock":
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()
