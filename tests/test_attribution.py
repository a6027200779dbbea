"""Tests for entity labels, on-ramp attribution and label precedence."""

import pytest

from chainwatch.entity import EntityAttributor
from chainwatch.indexer import TransferRecorder

from .helpers import ALICE, BOB, CAROL, CHAIN_ID, make_transfer, usdc


async def recorded(repository, transfer):
    await TransferRecorder(repository).record(transfer)
    return transfer


@pytest.fixture
def attributor(repository, labels):
    return EntityAttributor(repository, labels)


class TestEntityFlags:
    @pytest.mark.asyncio
    async def test_labels_flag_the_matching_side(self, repository, labels, attributor):
        label_id = await repository.add_entity_label(BOB, "Binance 14", "exchange", "manual")
        await labels.reload()
        transfer = await recorded(repository, make_transfer(ALICE, BOB, usdc(10)))

        result = await attributor.attribute(transfer)

        assert result.flags_added == 1
        (flag,) = await repository.get_entity_flags(transfer.id)
        assert flag.entity_label_id == label_id
        assert flag.side == "to"

    @pytest.mark.asyncio
    async def test_attribution_is_repeatable(self, repository, labels, attributor):
        await repository.add_entity_label(ALICE, "Treasury", "fund", "manual")
        await labels.reload()
        transfer = await recorded(repository, make_transfer(ALICE, BOB, usdc(10)))

        await attributor.attribute(transfer)
        again = await attributor.attribute(transfer)

        assert again.flags_added == 0
        assert len(await repository.get_entity_flags(transfer.id)) == 1

    @pytest.mark.asyncio
    async def test_unrecorded_transfer_is_rejected(self, attributor):
        with pytest.raises(ValueError):
            await attributor.attribute(make_transfer(ALICE, BOB, 1))


class TestLabelPrecedence:
    @pytest.mark.asyncio
    async def test_chain_label_shadows_global_of_same_type(self, repository, labels):
        global_exchange = await repository.add_entity_label(
            BOB, "Exchange (global)", "exchange", "import"
        )
        whale = await repository.add_entity_label(BOB, "Whale", "whale", "import")
        scoped_exchange = await repository.add_entity_label(
            BOB, "Exchange (mainnet)", "exchange", "manual", chain_id=CHAIN_ID
        )
        await labels.reload()

        on_mainnet = [label.id for label in labels.lookup(BOB, CHAIN_ID)]
        on_polygon = [label.id for label in labels.lookup(BOB, 137)]

        assert on_mainnet == [whale, scoped_exchange]
        assert on_polygon == [global_exchange, whale]

    @pytest.mark.asyncio
    async def test_lookup_is_case_insensitive(self, repository, labels):
        await repository.add_entity_label(BOB, "Exchange", "exchange", "import")
        await labels.reload()

        assert labels.lookup(BOB.replace("b", "B"), CHAIN_ID)


class TestOnrampAttribution:
    @pytest.mark.asyncio
    async def test_deposit_and_withdrawal(self, repository, labels, attributor):
        provider_id = await repository.add_provider("Coinbase")
        await repository.add_provider_wallet(provider_id, CHAIN_ID, BOB, "hot wallet")
        await labels.reload()

        deposit = await recorded(repository, make_transfer(ALICE, BOB, usdc(10)))
        withdrawal = await recorded(repository, make_transfer(BOB, CAROL, usdc(10)))

        assert (await attributor.attribute(deposit)).onramp_direction == "deposit"
        assert (await attributor.attribute(withdrawal)).onramp_direction == "withdrawal"

        row = await repository.get_onramp_transfer(deposit.id)
        assert row.provider_id == provider_id
        assert row.direction == "deposit"

    @pytest.mark.asyncio
    async def test_provider_wallet_is_chain_scoped(self, repository, labels, attributor):
        provider_id = await repository.add_provider("Kraken")
        await repository.add_provider_wallet(provider_id, 137, BOB)
        await labels.reload()
        transfer = await recorded(repository, make_transfer(ALICE, BOB, usdc(10)))

        result = await attributor.attribute(transfer)

        assert result.onramp_direction is None
        assert await repository.get_onramp_transfer(transfer.id) is None

    @pytest.mark.asyncio
    async def test_providers_on_both_sides_are_audited(self, repository, labels, attributor):
        first = await repository.add_provider("Coinbase")
        second = await repository.add_provider("Kraken")
        await repository.add_provider_wallet(first, CHAIN_ID, ALICE)
        await repository.add_provider_wallet(second, CHAIN_ID, BOB)
        await labels.reload()
        transfer = await recorded(repository, make_transfer(ALICE, BOB, usdc(10)))

        result = await attributor.attribute(transfer)
        await attributor.attribute(transfer)

        assert result.ambiguous
        assert await repository.get_onramp_transfer(transfer.id) is None
        assert await repository.count_attribution_audits(transfer.id) == 1
