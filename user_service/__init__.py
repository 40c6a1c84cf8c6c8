"""User accounts and share ledger service backed by a MongoDB document store."""
