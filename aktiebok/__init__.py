"""Aktiebok: multi-tenant share register with ledger, positions and cap table."""
