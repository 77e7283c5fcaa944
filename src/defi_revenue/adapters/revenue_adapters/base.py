from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Union

from eth_typing import ChecksumAddress
from web3 import Web3

from ...errors import InvalidAddressError

if TYPE_CHECKING:
    from ...services import Services

# Either a USD amount or, for fee-share protocols, network -> token id -> raw amount
RevenueResult = Union[Decimal, dict[str, dict[str, str]]]


def validate_address(address: str) -> ChecksumAddress:
    """Return the checksummed form of ``address``.

    Raises:
        InvalidAddressError: If ``address`` is not a 20-byte hex address.
    """
    if not isinstance(address, str) or not Web3.is_address(address):
        raise InvalidAddressError(f"Invalid address: {address!r}")
    return Web3.to_checksum_address(address)


class BaseRevenueAdapter(ABC):
    """Abstract base class for protocol revenue adapters."""

    def __init__(self, services: Services):
        """Initialize the adapter with shared service clients.

        Args:
            services: Clients for chain, indexer, price and REST collaborators
        """
        self.services = services

    @property
    @abstractmethod
    def adapter_name(self) -> str:
        """Return the name of this adapter."""
        ...

    @abstractmethod
    async def calculate_revenue(
        self, address: str, start: datetime, end: datetime
    ) -> RevenueResult:
        """Revenue attributable to ``address`` over ``[start, end]``.

        No activity in the window yields zero, never an error.
        """
        ...
