"""Tests for the HTTP block feed client."""

import httpx
import pytest

from chainwatch.errors import UpstreamFetchError
from chainwatch.indexer import HttpBlockSource, parse_block

PAYLOAD = {
    "number": 19000001,
    "hash": "0x" + "AB" * 32,
    "parent_hash": "0x" + "cd" * 32,
    "timestamp": "2024-01-01T00:00:12Z",
    "transfers": [
        {
            "tx_hash": "0x" + "01" * 32,
            "log_index": 3,
            "token_address": "0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48",
            "from": "0x" + "a1" * 20,
            "to": "0x" + "b2" * 20,
            "amount": "0x5f5e100",
            "symbol": "USDC",
            "decimals": 6,
        }
    ],
}


def make_source(handler) -> HttpBlockSource:
    return HttpBlockSource("http://feed.test/", transport=httpx.MockTransport(handler))


class TestParseBlock:
    def test_parses_payload(self):
        block = parse_block(PAYLOAD)

        assert block.number == 19000001
        assert block.hash == "0x" + "ab" * 32
        assert block.timestamp.tzinfo is not None
        (transfer,) = block.transfers
        assert transfer.amount == 100_000_000
        assert transfer.log_index == 3

    def test_unix_timestamp_and_decimal_amount(self):
        payload = dict(PAYLOAD, timestamp=1704067212)
        payload["transfers"] = [dict(PAYLOAD["transfers"][0], amount="123456789012345678901234567890")]

        block = parse_block(payload)

        assert block.timestamp.year == 2024
        assert block.transfers[0].amount == 123456789012345678901234567890


class TestHttpBlockSource:
    @pytest.mark.asyncio
    async def test_fetches_block_by_chain_and_height(self):
        paths = []

        def handler(request: httpx.Request) -> httpx.Response:
            paths.append(request.url.path)
            return httpx.Response(200, json=PAYLOAD)

        source = make_source(handler)
        block = await source.get_block(1, 19000001)
        header = await source.get_header(1, 19000001)
        await source.close()

        assert paths == ["/chains/1/blocks/19000001"] * 2
        assert block.number == 19000001
        assert header.parent_hash == "0x" + "cd" * 32

    @pytest.mark.asyncio
    async def test_missing_block_is_none(self):
        source = make_source(lambda request: httpx.Response(404))

        assert await source.get_block(1, 5) is None
        await source.close()

    @pytest.mark.asyncio
    async def test_server_error_is_upstream_error(self):
        source = make_source(lambda request: httpx.Response(503))

        with pytest.raises(UpstreamFetchError):
            await source.get_block(1, 5)
        await source.close()

    @pytest.mark.asyncio
    async def test_malformed_payload_is_upstream_error(self):
        source = make_source(lambda request: httpx.Response(200, json={"number": 5}))

        with pytest.raises(UpstreamFetchError, match="Malformed"):
            await source.get_block(1, 5)
        await source.close()

    @pytest.mark.parametrize(
        "override",
        [
            {"hash": None},
            {"number": None},
            {"transfers": [dict(PAYLOAD["transfers"][0], log_index=None)]},
        ],
    )
    @pytest.mark.asyncio
    async def test_null_fields_are_upstream_errors(self, override):
        payload = dict(PAYLOAD, **override)
        source = make_source(lambda request: httpx.Response(200, json=payload))

        with pytest.raises(UpstreamFetchError, match="Malformed"):
            await source.get_block(1, 19000001)
        await source.close()
