from __future__ import annotations

from typing import Any, Optional

from .utils import log_line


def _harvest_event(label: str = "", *, phase: str | None = None, **fields: Any) -> None:
    """Log one ``[HARVESTER][LABEL] key=value, ...`` line.

    Without a ``label`` the ``phase`` names the line; with both, ``phase``
    joins the payload. Logging failures are dropped so callers never see them.
    """

    if phase is not None:
        if label:
            fields.setdefault("phase", phase)
        else:
            label = phase
    try:
        payload = ", ".join(f"{key}={value!r}" for key, value in sorted(fields.items()))
        log_line(f"[HARVESTER][{label.upper()}] {payload}")
    except Exception:  # noqa: BLE001
        return


class RunEventLog:
    """Observability collaborator scoped to a single harvest run.

    Every event is stamped with the run label and owner id so concurrent runs
    never interleave unattributed lines. Emitted events are also kept in
    memory for the run summary.
    """

    def __init__(self, run_label: str, owner_id: Optional[str] = None) -> None:
        self.run_label = run_label
        self.owner_id = owner_id
        self.events: list[tuple[str, dict[str, Any]]] = []

    def event(self, label: str, **fields: Any) -> None:
        fields.setdefault("run", self.run_label)
        if self.owner_id is not None:
            fields.setdefault("owner", self.owner_id)
        self.events.append((label, dict(fields)))
        _harvest_event(label, **fields)

    def warn(self, message: str, **fields: Any) -> None:
        self.event("warn", message=message, **fields)

    def error(self, message: str, **fields: Any) -> None:
        self.event("error", message=message, **fields)

    def labels(self) -> list[str]:
        return [label for label, _ in self.events]


__all__ = ["_harvest_event", "RunEventLog"]
