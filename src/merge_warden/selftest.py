"""Built-in validator scenarios run by ``merge-warden self-test``."""

from __future__ import annotations

from dataclasses import dataclass

from rich.console import Console
from rich.table import Table

from merge_warden.merge.topology import CommitParentRecord, validate_topology

__all__ = ["Scenario", "ScenarioResult", "SCENARIOS", "run_self_tests", "render_results"]


@dataclass(frozen=True)
class Scenario:
    name: str
    records: tuple[CommitParentRecord, ...]
    expected: bool


@dataclass(frozen=True)
class ScenarioResult:
    scenario: Scenario
    actual: bool

    @property
    def passed(self) -> bool:
        return self.actual == self.scenario.expected


SCENARIOS: tuple[Scenario, ...] = (
    Scenario(
        "linear commits",
        (("c3", "c2"), ("c2", "c1"), ("c1", "t0")),
        True,
    ),
    Scenario(
        "merge closed by its first parent",
        (("m1", "c1", "b1"), ("b1", "c1"), ("c1", "t0")),
        True,
    ),
    Scenario(
        "sequential merges",
        (
            ("m2", "c2", "b2"),
            ("b2", "c2"),
            ("c2", "m1"),
            ("m1", "c1", "b1"),
            ("b1", "c1"),
            ("c1", "t0"),
        ),
        True,
    ),
    Scenario(
        "overlapping merges",
        (("m2", "c2", "m1"), ("m1", "c1", "b1"), ("b1", "c1"), ("c1", "t0")),
        False,
    ),
    Scenario(
        "commit out of place",
        (("c3", "c2"), ("cx", "c1"), ("c1", "t0")),
        False,
    ),
    Scenario(
        "merge never closed",
        (("m1", "c0", "b1"), ("b1", "b0"), ("b0", "t0")),
        False,
    ),
    Scenario("nothing to merge", (), False),
)


def run_self_tests(scenarios: tuple[Scenario, ...] = SCENARIOS) -> list[ScenarioResult]:
    return [ScenarioResult(scenario, validate_topology(scenario.records)) for scenario in scenarios]


def render_results(results: list[ScenarioResult], console: Console) -> bool:
    """Print a pass/fail table and return True when every scenario passed."""
    table = Table(title="Merge topology self-test", show_lines=False)
    table.add_column("Scenario", style="cyan")
    table.add_column("Expected")
    table.add_column("Actual")
    table.add_column("Result")

    for result in results:
        verdict = "[green]PASS[/green]" if result.passed else "[red]FAIL[/red]"
        table.add_row(
            result.scenario.name,
            "valid" if result.scenario.expected else "invalid",
            "valid" if result.actual else "invalid",
            verdict,
        )
    console.print(table)

    failed = [result for result in results if not result.passed]
    if failed:
        console.print(f"[red]{len(failed)} of {len(results)} scenario(s) failed[/red]")
        return False
    console.print(f"[green]All {len(results)} scenarios passed[/green]")
    return True
