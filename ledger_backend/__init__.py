"""Persistence backend for the double-entry ledger."""
