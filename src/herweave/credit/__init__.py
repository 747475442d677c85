"""Credit economy: cost schedule and balance transfers."""

from herweave.credit.ledger import CostSchedule, CreditLedger

__all__ = ["CostSchedule", "CreditLedger"]
