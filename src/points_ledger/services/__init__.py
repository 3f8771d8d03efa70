"""Service layer for the points ledger."""
