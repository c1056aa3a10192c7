"""HttpPayoutProvider — payout network client over HTTPS (httpx).

The provider is untrusted: every transport error, non-2xx status or
malformed body is turned into PayoutProviderError. The withdrawal id is sent
as Idempotency-Key so a retried call can never create a second transfer.
"""

import logging

import httpx

from config.settings import settings
from src.fm_common.errors import PayoutProviderError

logger = logging.getLogger(__name__)

_TRANSFERS_PATH = "/v1/transfers"


class HttpPayoutProvider:
    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._client = client or httpx.AsyncClient(
            base_url=base_url or settings.PAYOUT_PROVIDER_URL,
            timeout=timeout or settings.PAYOUT_TIMEOUT_SECONDS,
        )
        key = settings.PAYOUT_PROVIDER_API_KEY if api_key is None else api_key
        self._headers = {"Authorization": f"Bearer {key}"} if key else {}

    async def create_transfer(
        self,
        amount_cents: int,
        destination: str,
        currency: str,
        metadata: dict[str, str],
        idempotency_key: str,
    ) -> str:
        body = {
            "amount": amount_cents,
            "currency": currency.lower(),
            "destination": destination,
            "metadata": metadata,
        }
        headers = {**self._headers, "Idempotency-Key": idempotency_key}
        try:
            resp = await self._client.post(_TRANSFERS_PATH, json=body, headers=headers)
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPStatusError as e:
            raise PayoutProviderError(
                f"HTTP {e.response.status_code} from provider"
            ) from e
        except httpx.HTTPError as e:
            raise PayoutProviderError(f"{type(e).__name__}: {e}") from e
        except ValueError as e:
            raise PayoutProviderError("malformed response body") from e

        transfer_id = data.get("id") if isinstance(data, dict) else None
        if not isinstance(transfer_id, str) or not transfer_id:
            raise PayoutProviderError("response has no transfer id")
        logger.info(
            "Transfer %s created to %s for %d cents %s",
            transfer_id, destination, amount_cents, currency,
        )
        return transfer_id

    async def aclose(self) -> None:
        await self._client.aclose()


_provider: HttpPayoutProvider | None = None


def get_payout_provider() -> HttpPayoutProvider:
    """Get or create the process-wide provider client."""
    global _provider  # noqa: PLW0603
    if _provider is None:
        _provider = HttpPayoutProvider()
    return _provider


async def close_payout_provider() -> None:
    global _provider  # noqa: PLW0603
    if _provider is not None:
        await _provider.aclose()
        _provider = None
