"""Rich rendering of publish pipeline progress."""

from __future__ import annotations

from typing import Callable, Optional

from rich.tree import Tree

from merge_warden.merge.pipeline import PipelineState

STAGE_LABELS = {
    PipelineState.PREPARING: "Prepare source",
    PipelineState.LINTING: "Verify commit descriptions",
    PipelineState.REBASING: "Rebase onto target",
    PipelineState.VALIDATING: "Validate merge topology",
    PipelineState.FAST_FORWARDING: "Fast-forward target",
    PipelineState.PUSHING: "Push",
}

_SYMBOLS = {
    "done": "[green]●[/green]",
    "pending": "[green dim]○[/green dim]",
    "running": "[cyan]○[/cyan]",
    "error": "[red]●[/red]",
    "skipped": "[yellow]○[/yellow]",
}


class StepTracker:
    """Track pipeline stages and render them as a Rich tree."""

    def __init__(self, title: str):
        self.title = title
        self.steps: list[dict[str, str]] = []
        self._refresh_cb: Optional[Callable[[], None]] = None

    def attach_refresh(self, cb: Callable[[], None]) -> None:
        self._refresh_cb = cb

    def add(self, key: str, label: str) -> None:
        if key not in [s["key"] for s in self.steps]:
            self.steps.append({"key": key, "label": label, "status": "pending", "detail": ""})
            self._maybe_refresh()

    def start(self, key: str, detail: str = "") -> None:
        self._update(key, "running", detail)

    def complete(self, key: str, detail: str = "") -> None:
        self._update(key, "done", detail)

    def error(self, key: str, detail: str = "") -> None:
        self._update(key, "error", detail)

    def skip(self, key: str, detail: str = "") -> None:
        self._update(key, "skipped", detail)

    def running(self) -> Optional[str]:
        for step in self.steps:
            if step["status"] == "running":
                return step["key"]
        return None

    def _update(self, key: str, status: str, detail: str) -> None:
        for step in self.steps:
            if step["key"] == key:
                step["status"] = status
                if detail:
                    step["detail"] = detail
                break
        else:
            self.steps.append({"key": key, "label": key, "status": status, "detail": detail})
        self._maybe_refresh()

    def _maybe_refresh(self) -> None:
        if self._refresh_cb:
            self._refresh_cb()

    def observe(self, state: PipelineState, detail: str) -> None:
        """Stage observer for :class:`PublishPipeline`."""
        current = self.running()
        if state is PipelineState.ABORTING:
            if current:
                self.error(current, "failed")
            return
        if state in (PipelineState.IDLE, PipelineState.FAILED):
            return
        if current:
            self.complete(current)
        if state is PipelineState.DONE:
            for step in self.steps:
                if step["status"] == "pending":
                    self.skip(step["key"])
            return
        self.start(state.value, detail)

    def render(self) -> Tree:
        tree = Tree(f"[cyan]{self.title}[/cyan]", guide_style="grey50")
        for step in self.steps:
            label = step["label"]
            detail_text = step["detail"].strip()
            symbol = _SYMBOLS.get(step["status"], " ")
            if step["status"] == "pending":
                text = f"{label} ({detail_text})" if detail_text else label
                tree.add(f"{symbol} [bright_black]{text}[/bright_black]")
            elif detail_text:
                tree.add(f"{symbol} [white]{label}[/white] [bright_black]({detail_text})[/bright_black]")
            else:
                tree.add(f"{symbol} [white]{label}[/white]")
        return tree


def publish_tracker(title: str, *, lint: bool, push: bool) -> StepTracker:
    tracker = StepTracker(title)
    for state, label in STAGE_LABELS.items():
        if state is PipelineState.LINTING and not lint:
            continue
        if state is PipelineState.PUSHING and not push:
            continue
        tracker.add(state.value, label)
    return tracker
