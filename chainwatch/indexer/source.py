"""Block sources - where decoded blocks come from."""

import logging
from datetime import datetime, timezone
from typing import Protocol

import httpx

from ..errors import UpstreamFetchError
from ..types import BlockHeader, FetchedBlock, FetchedTransfer

logger = logging.getLogger(__name__)


class BlockSource(Protocol):
    """Supplies decoded blocks for a chain by height."""

    async def get_block(self, chain_id: int, number: int) -> FetchedBlock | None:
        """Return the canonical block at a height, or None if not produced yet."""
        ...

    async def get_header(self, chain_id: int, number: int) -> BlockHeader | None:
        """Return the canonical header at a height, or None if unavailable."""
        ...


def _parse_amount(value) -> int:
    # Feeds send raw uint256 values as ints, decimal strings or 0x-hex
    if isinstance(value, int):
        return value
    text = str(value)
    if text.startswith(("0x", "0X")):
        return int(text, 16)
    return int(text)


def _parse_timestamp(value) -> datetime:
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def parse_block(data: dict) -> FetchedBlock:
    """Build a FetchedBlock from a feed payload."""
    transfers = [
        FetchedTransfer(
            tx_hash=item["tx_hash"],
            log_index=int(item["log_index"]),
            token_address=item["token_address"],
            from_address=item["from"],
            to_address=item["to"],
            amount=_parse_amount(item["amount"]),
            symbol=item["symbol"],
            decimals=int(item["decimals"]),
        )
        for item in data.get("transfers", [])
    ]

    return FetchedBlock(
        number=int(data["number"]),
        hash=data["hash"].lower(),
        parent_hash=data["parent_hash"].lower(),
        timestamp=_parse_timestamp(data["timestamp"]),
        transfers=transfers,
    )


class HttpBlockSource:
    """Client for a decoded-block feed service."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def close(self):
        """Close the HTTP client."""
        await self._client.aclose()

    async def get_block(self, chain_id: int, number: int) -> FetchedBlock | None:
        """
        Fetch a decoded block.

        Args:
            chain_id: Chain to fetch from
            number: Block height

        Returns:
            The block, or None if the feed has not reached this height
        """
        try:
            response = await self._client.get(
                f"{self.base_url}/chains/{chain_id}/blocks/{number}"
            )
            if response.status_code == 404:
                return None
            response.raise_for_status()
            return parse_block(response.json())

        except httpx.HTTPError as e:
            raise UpstreamFetchError(
                f"Fetching block {number} on chain {chain_id} failed: {e}"
            ) from e
        except (KeyError, ValueError, TypeError, AttributeError) as e:
            raise UpstreamFetchError(
                f"Malformed block {number} on chain {chain_id}: {e}"
            ) from e

    async def get_header(self, chain_id: int, number: int) -> BlockHeader | None:
        block = await self.get_block(chain_id, number)
        return block.header if block else None
