"""Exchange package: base asset and the deposit/redeem vault."""

from .asset import BaseAsset
from .vault import Vault

__all__ = ["BaseAsset", "Vault"]
