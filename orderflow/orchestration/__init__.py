"""State transition tables for the ledger entities."""
