"""Core ledger, contract and signing modules."""
