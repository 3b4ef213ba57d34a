"""Gate por rango de versiones aceptable (`doublezero.version_constraint`)."""

from __future__ import annotations

from core.domain.constraints import VersionConstraint
from core.domain.errors import ConstraintViolation
from core.domain.models import ParsedVersion
from core.log_setup import get_logger

logger = get_logger("sync")


def check_constraint(target: ParsedVersion, constraint: VersionConstraint | None) -> None:
    """Sin constraint siempre pasa; fuera de rango lanza `ConstraintViolation`."""

    if constraint is None:
        return
    if not constraint.check(target):
        raise ConstraintViolation(target.core_string(), str(constraint))
    logger.debug("target version satisfies version constraint constraint=%s", constraint)
