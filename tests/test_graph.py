"""Tests for wallet first-seen records, graph edges and clustering."""

import pytest

from chainwatch.graph import GraphAggregator, build_clusters, recluster

from .helpers import (
    ALICE,
    BOB,
    CAROL,
    CHAIN_ID,
    DAVE,
    block_time,
    make_fetched,
    make_transfer,
    usdc,
)


class TestGraphAggregator:
    @pytest.mark.asyncio
    async def test_two_transfers_fold_into_one_edge(self, repository):
        aggregator = GraphAggregator(repository)

        await aggregator.absorb(make_transfer(ALICE, BOB, 100, block_number=10))
        await aggregator.absorb(make_transfer(ALICE, BOB, 50, block_number=12))

        edge = await repository.get_edge(ALICE, BOB, CHAIN_ID)
        assert edge.transfer_count == 2
        assert edge.total_amount == 150
        assert edge.first_seen == block_time(10)
        assert edge.last_seen == block_time(12)

    @pytest.mark.asyncio
    async def test_first_seen_is_created_once(self, repository):
        aggregator = GraphAggregator(repository)

        first = await aggregator.absorb(make_transfer(ALICE, BOB, 1, block_number=5))
        second = await aggregator.absorb(make_transfer(BOB, ALICE, 1, block_number=6))

        assert {(r.address, r.first_direction) for r in first} == {
            (ALICE, "out"),
            (BOB, "in"),
        }
        assert second == []

        bob = await repository.get_first_seen(BOB, CHAIN_ID)
        assert bob.first_block == 5
        assert bob.first_direction == "in"

    @pytest.mark.asyncio
    async def test_edges_are_directional(self, repository):
        aggregator = GraphAggregator(repository)
        await aggregator.absorb(make_transfer(ALICE, BOB, 10))

        assert await repository.get_edge(BOB, ALICE, CHAIN_ID) is None

    @pytest.mark.asyncio
    async def test_outgoing_and_incoming_by_total(self, repository):
        aggregator = GraphAggregator(repository)
        await aggregator.absorb(make_transfer(ALICE, BOB, 10))
        await aggregator.absorb(make_transfer(ALICE, CAROL, 500))
        await aggregator.absorb(make_transfer(DAVE, CAROL, 20))

        outgoing = await aggregator.outgoing(ALICE, CHAIN_ID)
        assert [e.dest_address for e in outgoing] == [CAROL, BOB]

        incoming = await aggregator.incoming(CAROL)
        assert [e.source_address for e in incoming] == [ALICE, DAVE]

    @pytest.mark.asyncio
    async def test_large_amounts_sum_exactly(self, repository):
        aggregator = GraphAggregator(repository)
        big = 2**255

        await aggregator.absorb(make_transfer(ALICE, BOB, big))
        await aggregator.absorb(make_transfer(ALICE, BOB, big - 1))

        edge = await repository.get_edge(ALICE, BOB, CHAIN_ID)
        assert edge.total_amount == 2**256 - 1


class TestGraphConsistency:
    @pytest.mark.asyncio
    async def test_edges_match_transfer_log(self, repository, source, pipeline):
        parties = [ALICE, BOB, CAROL, DAVE]
        transfers = {}
        for n in range(1, 9):
            sender = parties[n % 4]
            recipient = parties[(n * 3 + 1) % 4]
            transfers[n] = [
                make_fetched(sender, recipient, usdc(n)),
                make_fetched(recipient, sender, usdc(n * 2), log_index=1),
            ]

        for block in source.extend(1, 8, transfers=transfers):
            await pipeline.advance(block)

        edges = await repository.get_edges(CHAIN_ID)
        assert edges
        for edge in edges:
            expected = await repository.aggregate_edge(
                edge.source_address, edge.dest_address, CHAIN_ID
            )
            assert edge == expected

    @pytest.mark.asyncio
    async def test_first_seen_is_earliest_touching_block(self, repository, source, pipeline):
        blocks = source.extend(
            1,
            4,
            transfers={
                2: [make_fetched(ALICE, BOB, usdc(1))],
                3: [make_fetched(BOB, CAROL, usdc(1))],
                4: [make_fetched(CAROL, ALICE, usdc(1))],
            },
        )
        for block in blocks:
            await pipeline.advance(block)

        for address, block_number in ((ALICE, 2), (BOB, 2), (CAROL, 3)):
            first = await repository.get_first_seen(address, CHAIN_ID)
            assert first.first_block == block_number


class TestClustering:
    def test_build_clusters_numbers_by_smallest_address(self):
        pairs = [(DAVE, CAROL), (CAROL, DAVE), (BOB, ALICE), (ALICE, BOB)]

        assert build_clusters(pairs) == {ALICE: 1, BOB: 1, CAROL: 2, DAVE: 2}

    def test_build_clusters_merges_chains(self):
        pairs = [(ALICE, BOB), (BOB, CAROL)]

        assert set(build_clusters(pairs).values()) == {1}

    @pytest.mark.asyncio
    async def test_recluster_uses_bidirectional_edges(self, repository):
        aggregator = GraphAggregator(repository)
        for sender, recipient in (
            (ALICE, BOB),
            (BOB, ALICE),
            (CAROL, DAVE),
            (DAVE, CAROL),
            (ALICE, CAROL),
        ):
            await aggregator.absorb(make_transfer(sender, recipient, 1))

        assigned = await recluster(repository, CHAIN_ID)

        assert assigned == 4
        assert await repository.get_clusters(CHAIN_ID) == {
            ALICE: 1,
            BOB: 1,
            CAROL: 2,
            DAVE: 2,
        }

    @pytest.mark.asyncio
    async def test_recluster_replaces_previous_assignments(self, repository):
        aggregator = GraphAggregator(repository)
        await aggregator.absorb(make_transfer(ALICE, BOB, 1))
        await aggregator.absorb(make_transfer(BOB, ALICE, 1))
        await recluster(repository, CHAIN_ID)

        await repository.delete_edge(BOB, ALICE, CHAIN_ID)
        await recluster(repository, CHAIN_ID)

        assert await repository.get_clusters(CHAIN_ID) == {}
