"""Capability checks consumed by the ledger."""

from .roles import AccessControl, MINT_AND_BURN_ROLE, OWNER

__all__ = ["AccessControl", "MINT_AND_BURN_ROLE", "OWNER"]
