from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Union


@dataclass(frozen=True)
class LineItemRequest:
    code: str
    quantity: int

    def __post_init__(self) -> None:
        if not (self.code or "").strip():
            raise ValueError("Product code must not be empty.")
        if isinstance(self.quantity, bool) or not isinstance(self.quantity, int):
            raise ValueError(f"Quantity must be an integer, got: {self.quantity!r}")
        if self.quantity < 1:
            raise ValueError(f"Quantity must be >= 1, got: {self.quantity}")


class StockStatus(str, Enum):
    IN_STOCK = "inStock"
    OUT_OF_STOCK = "outOfStock"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, raw: str | None) -> "StockStatus":
        value = (raw or "").strip()
        for status in cls:
            if status.value == value:
                return status
        return cls.UNKNOWN


@dataclass(frozen=True)
class ProductMatch:
    displayed_code: str = ""
    name: str = ""
    stock_status: StockStatus = StockStatus.UNKNOWN
    stock_raw: str = ""

    @property
    def has_info(self) -> bool:
        return bool(self.displayed_code or self.name or self.stock_raw)

    @property
    def in_stock(self) -> bool:
        return self.stock_status is StockStatus.IN_STOCK


@dataclass(frozen=True)
class Success:
    code: str
    quantity: int


@dataclass(frozen=True)
class Failure:
    code: str
    reason: str


Outcome = Union[Success, Failure]


@dataclass
class BatchResult:
    """Per-batch outcome partitions, in input order within each list.

    Owned by the orchestrator while items are processed. Once `finalize()` is
    called, `record()`, `mark_aborted()` and assigning any field raise
    RuntimeError. The lists are not copied, so callers only read them.
    """

    successes: List[Success] = field(default_factory=list)
    failures: List[Failure] = field(default_factory=list)
    aborted: bool = False
    _final: bool = field(default=False, repr=False, compare=False)

    def __setattr__(self, name: str, value) -> None:
        if getattr(self, "_final", False):
            raise RuntimeError(f"BatchResult is finalized; cannot set {name}.")
        super().__setattr__(name, value)

    def record(self, outcome: Outcome) -> None:
        if self._final:
            raise RuntimeError("BatchResult is finalized; no more outcomes can be recorded.")
        if isinstance(outcome, Success):
            self.successes.append(outcome)
        elif isinstance(outcome, Failure):
            self.failures.append(outcome)
        else:
            raise TypeError(f"Unsupported outcome: {outcome!r}")

    def mark_aborted(self) -> None:
        self.aborted = True

    def finalize(self) -> "BatchResult":
        if not self._final:
            self._final = True
        return self

    @property
    def finalized(self) -> bool:
        return self._final

    @property
    def total(self) -> int:
        return len(self.successes) + len(self.failures)

    @property
    def kind(self) -> str:
        if self.total == 0:
            return "empty"
        if not self.failures:
            return "all_success"
        if not self.successes:
            return "all_failure"
        return "mixed"
