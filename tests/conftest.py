"""Shared fixtures backed by a temporary SQLite store."""

import pytest
import pytest_asyncio

from chainwatch.config import ChainConfig, TokenConfig
from chainwatch.db import Repository
from chainwatch.entity import EntityLabelStore

from .helpers import CHAIN_ID, USDC, FakeBlockSource, build_pipeline


@pytest_asyncio.fixture
async def repository(tmp_path):
    repo = Repository(tmp_path / "chainwatch.db")
    await repo.initialize()
    yield repo
    await repo.close()


@pytest.fixture
def source():
    return FakeBlockSource()


@pytest.fixture
def chain_config():
    return ChainConfig(
        name="ethereum",
        chain_id=CHAIN_ID,
        tokens=[TokenConfig(symbol="USDC", address=USDC, decimals=6)],
        start_block=1,
        poll_interval_secs=0.01,
        max_reorg_depth=64,
    )


@pytest_asyncio.fixture
async def labels(repository):
    store = EntityLabelStore(repository)
    await store.load()
    return store


@pytest.fixture
def pipeline(repository, source, chain_config, labels):
    return build_pipeline(repository, source, chain_config, labels)
