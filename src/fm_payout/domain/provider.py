"""Payout provider Protocol — the only operation the settlement core needs."""

from typing import Protocol


class PayoutProviderProtocol(Protocol):
    async def create_transfer(
        self,
        amount_cents: int,
        destination: str,
        currency: str,
        metadata: dict[str, str],
        idempotency_key: str,
    ) -> str:
        """Create a transfer and return the provider's transfer id.

        Raises PayoutProviderError on any network, validation or provider failure.
        """
        ...
