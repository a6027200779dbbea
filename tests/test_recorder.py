"""Tests for idempotent transfer recording."""

import pytest

from chainwatch.indexer import Continuation, TransferRecorder

from .helpers import ALICE, BOB, CHAIN_ID, make_fetched, make_transfer, usdc


class TestTransferRecorder:
    @pytest.mark.asyncio
    async def test_record_twice_keeps_one_row(self, repository):
        recorder = TransferRecorder(repository)
        transfer = make_transfer(ALICE, BOB, usdc(100), tx_hash="0x" + "11" * 32)

        first = await recorder.record(transfer)
        second = await recorder.record(
            make_transfer(ALICE, BOB, usdc(100), tx_hash="0x" + "11" * 32)
        )

        assert first.inserted
        assert second.duplicate
        assert first.transfer_id == second.transfer_id
        assert await repository.count_transfers(CHAIN_ID) == 1

    @pytest.mark.asyncio
    async def test_log_index_distinguishes_transfers(self, repository):
        recorder = TransferRecorder(repository)
        tx_hash = "0x" + "22" * 32

        a = await recorder.record(make_transfer(ALICE, BOB, usdc(1), tx_hash=tx_hash))
        b = await recorder.record(
            make_transfer(ALICE, BOB, usdc(1), tx_hash=tx_hash, log_index=1)
        )

        assert a.transfer_id != b.transfer_id
        assert await repository.count_transfers(CHAIN_ID) == 2

    @pytest.mark.asyncio
    async def test_record_sets_transfer_id(self, repository):
        recorder = TransferRecorder(repository)
        transfer = make_transfer(ALICE, BOB, usdc(5))

        result = await recorder.record(transfer)

        assert transfer.id == result.transfer_id
        stored = await repository.get_transfer(result.transfer_id)
        assert stored.from_address == ALICE
        assert stored.amount == usdc(5)

    @pytest.mark.asyncio
    async def test_amount_beyond_64_bits_is_preserved(self, repository):
        recorder = TransferRecorder(repository)
        amount = 2**200 + 7
        result = await recorder.record(make_transfer(ALICE, BOB, amount))

        stored = await repository.get_transfer(result.transfer_id)
        assert stored.amount == amount

    @pytest.mark.asyncio
    async def test_addresses_are_lowercased(self, repository):
        recorder = TransferRecorder(repository)
        result = await recorder.record(make_transfer(ALICE.upper().replace("0X", "0x"), BOB, 1))

        stored = await repository.get_transfer(result.transfer_id)
        assert stored.from_address == ALICE


class TestBlockReplay:
    @pytest.mark.asyncio
    async def test_replayed_block_is_a_no_op(self, repository, source, pipeline):
        (block,) = source.extend(
            1, 1, transfers={1: [make_fetched(ALICE, BOB, usdc(100))]}
        )

        first = await pipeline.advance(block)
        second = await pipeline.advance(block)

        assert first.continuation is Continuation.EXTEND
        assert first.transfers_recorded == 1
        assert second.continuation is Continuation.DUPLICATE
        assert not second.applied
        assert await repository.count_transfers(CHAIN_ID) == 1

        edge = await repository.get_edge(ALICE, BOB, CHAIN_ID)
        assert edge.transfer_count == 1
