"""Componentes de UI para CLI (Rich).

Por qué separar componentes:
- Evita mezclar lógica de comandos con detalles visuales.
- Permite reutilizar tablas/paneles entre `check` y `doctor`.
"""

from __future__ import annotations

from rich.align import Align
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from core.domain.models import RecommendedVersionMap, SyncDecision, SyncOutcome

_OUTCOME_STYLES = {
    SyncOutcome.NO_CHANGE: "green",
    SyncOutcome.PROCEED: "cyan",
    SyncOutcome.NO_COMMANDS_CONFIGURED: "yellow",
    SyncOutcome.BLOCKED_BY_IDENTITY: "red",
    SyncOutcome.BLOCKED_BY_CONSTRAINT: "red",
}


def print_banner(console: Console) -> None:
    """Imprime el banner de bienvenida.

    Por qué aquí:
    - Evita dependencias circulares (main <-> doctor).
    - Solo lo usan los comandos interactivos; `run` loguea sin banner.
    """

    title = Text("doublezero-version-sync", style="bold cyan")
    subtitle = Text("Versión recomendada • Gates de identidad y rango • Comandos", style="dim")
    body = Align.center(Text.assemble(title, "\n", subtitle), vertical="middle")
    console.print(Panel(body, border_style="cyan", padding=(1, 4)))


def build_version_map_table(version_map: RecommendedVersionMap) -> Table:
    table = Table(title=f"Recommended versions ({version_map.binding} binding)")
    table.add_column("Cluster", style="cyan", no_wrap=True)
    table.add_column("Package version", style="white")
    table.add_column("Note", style="red")

    clusters = sorted(set(version_map.entries) | set(version_map.ambiguous))
    for cluster in clusters:
        table.add_row(
            cluster,
            version_map.entries.get(cluster, "-"),
            version_map.ambiguous.get(cluster, ""),
        )
    return table


def build_decision_panel(decision: SyncDecision, *, command_names: list[str] | None = None) -> Panel:
    """Panel para presentar el `SyncDecision` de un `check`."""

    style = _OUTCOME_STYLES.get(decision.outcome, "white")
    title = Text(f"Sync decision: {decision.outcome.value}", style=f"bold {style}")

    body = Text()
    body.append("Cluster: ", style="bold")
    body.append(f"{decision.cluster}\n")
    body.append("Installed -> recommended: ", style="bold")
    body.append(f"{decision.diff} ({decision.diff.direction_symbol})\n")
    if decision.package_version:
        body.append("Package version: ", style="bold")
        body.append(f"{decision.package_version}\n")
    if decision.error is not None:
        body.append("\nBlocked: ", style="bold red")
        body.append(f"{decision.error}\n")
    if decision.outcome is SyncOutcome.PROCEED and command_names:
        body.append("\nCommands to run:\n", style="bold")
        for idx, name in enumerate(command_names, start=1):
            body.append(f"{idx}. {name}\n")

    return Panel(body, title=title, border_style=style)
