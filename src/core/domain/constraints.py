"""Rangos de versión aceptables declarados por el operador.

Sintaxis: expresiones separadas por coma que deben cumplirse todas, p.ej.
`">= 0.6.9, < 0.8.0"`. Operadores: `=`, `==`, `!=`, `>`, `<`, `>=`, `<=` y
`~>` (pesimista: `~> 1.2.3` equivale a `>= 1.2.3, < 1.3.0`; `~> 1.2` a
`>= 1.2.0, < 2.0.0`). Solo se evalúa el core de la versión objetivo.
"""

from __future__ import annotations

import re

from pydantic import BaseModel, Field
from pydantic.config import ConfigDict

from core.domain.models import ParsedVersion

_TERM_RE = re.compile(r"^(?P<op>~>|>=|<=|!=|==|=|>|<)?\s*v?(?P<version>\d+(?:\.\d+){0,2})$")


class Comparator(BaseModel):
    model_config = ConfigDict(frozen=True)

    operator: str = Field(default="=")
    version: tuple[int, int, int]
    precision: int = Field(default=3, ge=1, le=3, description="Segmentos escritos por el operador.")

    @classmethod
    def parse(cls, term: str) -> "Comparator":
        match = _TERM_RE.match(term.strip())
        if match is None:
            raise ValueError(f"invalid version constraint term: {term!r}")
        parts = [int(p) for p in match.group("version").split(".")]
        precision = len(parts)
        parts += [0] * (3 - precision)
        return cls(
            operator=match.group("op") or "=",
            version=(parts[0], parts[1], parts[2]),
            precision=precision,
        )

    def _pessimistic_upper(self) -> tuple[int, int, int]:
        major, minor, _ = self.version
        if self.precision == 3:
            return (major, minor + 1, 0)
        return (major + 1, 0, 0)

    def check(self, core: tuple[int, int, int]) -> bool:
        op = self.operator
        if op in ("=", "=="):
            return core == self.version
        if op == "!=":
            return core != self.version
        if op == ">":
            return core > self.version
        if op == "<":
            return core < self.version
        if op == ">=":
            return core >= self.version
        if op == "<=":
            return core <= self.version
        if op == "~>":
            return self.version <= core < self._pessimistic_upper()
        raise ValueError(f"unsupported constraint operator: {op}")

    def __str__(self) -> str:
        written = ".".join(str(p) for p in self.version[: self.precision])
        return f"{self.operator}{written}"


class VersionConstraint(BaseModel):
    """Conjunción de comparadores, parseada una sola vez al cargar config."""

    model_config = ConfigDict(frozen=True)

    raw: str
    comparators: tuple[Comparator, ...]

    @classmethod
    def parse(cls, text: str) -> "VersionConstraint":
        terms = (text or "").split(",")
        if not any(t.strip() for t in terms):
            raise ValueError("version constraint is empty")
        comparators = []
        for term in terms:
            if not term.strip():
                raise ValueError(f"empty term in version constraint: {text!r}")
            comparators.append(Comparator.parse(term))
        return cls(raw=text, comparators=tuple(comparators))

    def check(self, version: ParsedVersion) -> bool:
        return all(c.check(version.core) for c in self.comparators)

    def __str__(self) -> str:
        return ", ".join(str(c) for c in self.comparators)
