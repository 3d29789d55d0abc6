"""Rights split ledger."""

from proofy.rights.ledger import RightsLedger

__all__ = ["RightsLedger"]
