"""
Tests for claimable/refundable lockup classification.
"""

import threading

import pytest

from bridgeswap_syncer.claim_refund import (
    compute_claimable_and_refundable_evm_swaps,
    compute_refundable_btc_chain_swaps,
    is_timelock_elapsed,
)

from conftest import (
    USER,
    FakeBtcIndexer,
    FakeEvmIndexer,
    FakeHeights,
    btc_details,
    make_lockup,
    make_swap,
)

HASH_A = "0x" + "aa" * 32
HASH_B = "0x" + "bb" * 32
HASH_C = "0x" + "cc" * 32


class TestReadyToClaim:
    @pytest.mark.asyncio
    async def test_known_preimage_is_used(self, store) -> None:
        indexer = FakeEvmIndexer(claimable=[
            make_lockup(preimage_hash=HASH_A, known_preimage={"preimage": "11" * 32}),
        ])
        result = await compute_claimable_and_refundable_evm_swaps(USER, indexer, FakeHeights(), store)

        assert len(result.ready_to_claim) == 1
        assert result.ready_to_claim[0].preimage == "0x" + "11" * 32

    @pytest.mark.asyncio
    async def test_stored_preimage_matches_unprefixed_hash(self, store) -> None:
        store.upsert_swap(make_swap(id="s1", preimage_hash=HASH_A[2:], preimage="22" * 32))
        indexer = FakeEvmIndexer(claimable=[make_lockup(preimage_hash=HASH_A)])

        result = await compute_claimable_and_refundable_evm_swaps(USER, indexer, FakeHeights(), store)

        assert [c.preimage for c in result.ready_to_claim] == ["0x" + "22" * 32]
        assert result.to_api()["readyToClaim"][0]["preimage"] == "0x" + "22" * 32

    @pytest.mark.asyncio
    async def test_unresolvable_preimage_is_dropped(self, store) -> None:
        store.upsert_swap(make_swap(id="other-user", user_id="0x" + "99" * 20, preimage_hash=HASH_A, preimage="33" * 32))
        store.upsert_swap(make_swap(id="no-preimage", preimage_hash=HASH_A))
        indexer = FakeEvmIndexer(claimable=[make_lockup(preimage_hash=HASH_A)])

        result = await compute_claimable_and_refundable_evm_swaps(USER, indexer, FakeHeights(), store)

        assert result.ready_to_claim == []

    @pytest.mark.asyncio
    async def test_claimed_or_refunded_never_claimable(self, store) -> None:
        indexer = FakeEvmIndexer(claimable=[
            make_lockup(preimage_hash=HASH_A, claimed=True, known_preimage={"preimage": "11" * 32}),
            make_lockup(preimage_hash=HASH_B, refunded=True, known_preimage={"preimage": "11" * 32}),
        ])
        result = await compute_claimable_and_refundable_evm_swaps(USER, indexer, FakeHeights(), store)
        assert result.ready_to_claim == []

    @pytest.mark.asyncio
    async def test_preimage_lookup_runs_off_the_event_loop(self, store, monkeypatch) -> None:
        store.upsert_swap(make_swap(id="s1", preimage_hash=HASH_A, preimage="22" * 32))
        lookup_threads = []
        get_preimages = store.get_preimages

        def recording_get_preimages(*args, **kwargs):
            lookup_threads.append(threading.get_ident())
            return get_preimages(*args, **kwargs)

        monkeypatch.setattr(store, "get_preimages", recording_get_preimages)
        indexer = FakeEvmIndexer(claimable=[make_lockup(preimage_hash=HASH_A)])

        result = await compute_claimable_and_refundable_evm_swaps(USER, indexer, FakeHeights(), store)

        assert len(result.ready_to_claim) == 1
        assert lookup_threads and threading.get_ident() not in lookup_threads


class TestRefundPartition:
    @pytest.mark.asyncio
    async def test_partition_by_height(self, store) -> None:
        indexer = FakeEvmIndexer(refundable=[
            make_lockup(preimage_hash=HASH_A, timelock=900),
            make_lockup(preimage_hash=HASH_B, timelock=1100),
        ])
        heights = FakeHeights({4114: 1000})

        result = await compute_claimable_and_refundable_evm_swaps(USER, indexer, heights, store)

        assert [lockup.preimage_hash for lockup in result.ready_to_refund] == [HASH_A]
        assert [lockup.preimage_hash for lockup in result.wait_unlock] == [HASH_B]
        assert heights.calls == [4114]

    @pytest.mark.asyncio
    async def test_timelock_equal_to_height_is_ready(self, store) -> None:
        indexer = FakeEvmIndexer(refundable=[make_lockup(preimage_hash=HASH_A, timelock=1000)])
        result = await compute_claimable_and_refundable_evm_swaps(
            USER, indexer, FakeHeights({4114: 1000}), store
        )
        assert len(result.ready_to_refund) == 1
        assert result.wait_unlock == []

    @pytest.mark.asyncio
    async def test_failed_chain_only_drops_its_lockups(self, store) -> None:
        indexer = FakeEvmIndexer(refundable=[
            make_lockup(preimage_hash=HASH_A, chain_id=1, timelock=10),
            make_lockup(preimage_hash=HASH_B, chain_id=5115, timelock=10),
        ])
        heights = FakeHeights({1: 100, 5115: 100}, failing={5115})

        result = await compute_claimable_and_refundable_evm_swaps(USER, indexer, heights, store)

        assert [lockup.chain_id for lockup in result.ready_to_refund] == [1]
        assert result.wait_unlock == []
        assert sorted(heights.calls) == [1, 5115]

    @pytest.mark.asyncio
    async def test_claimed_lockup_never_refundable(self, store) -> None:
        indexer = FakeEvmIndexer(refundable=[
            make_lockup(preimage_hash=HASH_A, timelock=10, claimed=True),
            make_lockup(preimage_hash=HASH_B, timelock=10, refunded=True),
            make_lockup(preimage_hash=HASH_C, timelock=10),
        ])
        result = await compute_claimable_and_refundable_evm_swaps(
            USER, indexer, FakeHeights({4114: 100}), store
        )
        assert [lockup.preimage_hash for lockup in result.ready_to_refund] == [HASH_C]

    @pytest.mark.asyncio
    async def test_one_height_lookup_per_chain(self, store) -> None:
        indexer = FakeEvmIndexer(refundable=[
            make_lockup(preimage_hash=HASH_A, timelock=10),
            make_lockup(preimage_hash=HASH_B, timelock=20),
        ])
        heights = FakeHeights({4114: 100})
        await compute_claimable_and_refundable_evm_swaps(USER, indexer, heights, store)
        assert heights.calls == [4114]

    @pytest.mark.asyncio
    async def test_indexer_failure_gives_empty_buckets(self, store) -> None:
        result = await compute_claimable_and_refundable_evm_swaps(
            USER, FakeEvmIndexer(fail=True), FakeHeights(), store
        )
        assert result.ready_to_claim == []
        assert result.ready_to_refund == []
        assert result.wait_unlock == []


def test_timelock_tie_break() -> None:
    assert is_timelock_elapsed(1000, 1000)
    assert is_timelock_elapsed(999, 1000)
    assert not is_timelock_elapsed(1001, 1000)


class TestBtcChainRefunds:
    def _btc_swap(self, swap_id: str, timeout: int, **overrides):
        data = dict(
            id=swap_id,
            asset_send="BTC",
            asset_receive="cBTC",
            status="swap.expired",
            lockup_details=btc_details(timeout_block_height=timeout),
        )
        data.update(overrides)
        return make_swap(**data)

    @pytest.mark.asyncio
    async def test_partition_against_tip(self, store) -> None:
        store.upsert_swap(self._btc_swap("ready", 880000))
        store.upsert_swap(self._btc_swap("locked", 880001))
        store.upsert_swap(self._btc_swap("done", 800000, status="local.userRefunded"))
        store.upsert_swap(self._btc_swap("pending", 800000, status="transaction.mempool"))
        store.upsert_swap(self._btc_swap("refunded", 800000, refund_tx="txid"))

        result = await compute_refundable_btc_chain_swaps(USER, store, FakeBtcIndexer(tip_height=880000))

        assert [swap.id for swap in result.ready_to_refund] == ["ready"]
        assert [swap.id for swap in result.wait_unlock] == ["locked"]

    @pytest.mark.asyncio
    async def test_claimed_or_refunded_swaps_never_refundable(self, store) -> None:
        store.upsert_swap(self._btc_swap("claimed", 100, status="transaction.claimed"))
        store.upsert_swap(self._btc_swap("swap-refunded", 100, status="swap.refunded"))
        store.upsert_swap(self._btc_swap("tx-refunded", 100, status="transaction.refunded"))
        store.upsert_swap(self._btc_swap("user-claimed", 100, status="local.userClaimed"))
        store.upsert_swap(self._btc_swap("expired", 100))

        result = await compute_refundable_btc_chain_swaps(USER, store, FakeBtcIndexer(tip_height=1000))

        assert [swap.id for swap in result.ready_to_refund] == ["expired"]
        assert result.wait_unlock == []

    @pytest.mark.asyncio
    async def test_tip_failure_gives_empty_buckets(self, store) -> None:
        store.upsert_swap(self._btc_swap("ready", 1))
        result = await compute_refundable_btc_chain_swaps(USER, store, FakeBtcIndexer(fail=True))
        assert result.ready_to_refund == []
        assert result.wait_unlock == []
