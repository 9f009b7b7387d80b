"""Order fulfillment and commission ledger backend."""

__version__ = "1.0.0"
