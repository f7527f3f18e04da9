"""HTTP surface of the ledger."""
