from __future__ import annotations

from dataclasses import dataclass

from rozo_warnquota.models.quota import QuotaType


@dataclass(frozen=True)
class DeliveryOutcome:
    qtype: QuotaType
    name: str
    recipient: str | None
    status: str  # SENT / WARN / SKIPPED / FAILED
    message: str = ""


@dataclass(frozen=True)
class DispatchSummary:
    outcomes: list[DeliveryOutcome]

    @property
    def sent(self) -> list[DeliveryOutcome]:
        return [o for o in self.outcomes if o.status in ("SENT", "WARN")]

    @property
    def failures(self) -> int:
        return sum(1 for o in self.outcomes if o.status in ("SKIPPED", "FAILED"))
