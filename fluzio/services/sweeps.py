"""
Result type shared by the periodic batch passes.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class SweepResult:
    processed: int = 0
    errors: list[str] = field(default_factory=list)

    def record_error(self, item_id: str, exc: Exception) -> None:
        self.errors.append(f"{item_id}: {exc}")
