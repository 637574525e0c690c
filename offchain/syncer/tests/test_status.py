"""
Tests for swap status buckets and transitions.
"""

import pytest

from bridgeswap_syncer.status import (
    FAILED_STATUSES,
    LOCAL_FINAL_STATUSES,
    PENDING_STATUSES,
    SUCCESS_STATUSES,
    SwapStatus,
    is_transition_allowed,
    parse_status,
)


class TestParseStatus:
    def test_known_values(self) -> None:
        assert parse_status("transaction.claim.pending") == SwapStatus.TRANSACTION_CLAIM_PENDING
        assert parse_status("local.userRefundable") == SwapStatus.USER_REFUNDABLE

    def test_unknown_values(self) -> None:
        assert parse_status("transaction.unknown") is None
        assert parse_status(None) is None
        assert parse_status(42) is None


class TestBuckets:
    def test_every_status_in_exactly_one_upstream_or_local_bucket(self) -> None:
        upstream = PENDING_STATUSES | FAILED_STATUSES | (SUCCESS_STATUSES - {SwapStatus.USER_CLAIMED})
        local = {s for s in SwapStatus if s.value.startswith("local.")}
        assert upstream | local == set(SwapStatus)
        assert not upstream & local


class TestTransitions:
    @pytest.mark.parametrize("current", sorted(PENDING_STATUSES))
    def test_pending_may_go_anywhere(self, current: SwapStatus) -> None:
        for new in SwapStatus:
            assert is_transition_allowed(current, new)

    @pytest.mark.parametrize("current", sorted(FAILED_STATUSES | SUCCESS_STATUSES | LOCAL_FINAL_STATUSES))
    def test_never_back_to_pending(self, current: SwapStatus) -> None:
        for new in PENDING_STATUSES:
            assert not is_transition_allowed(current, new)

    @pytest.mark.parametrize("current", sorted(LOCAL_FINAL_STATUSES))
    def test_local_terminal_is_frozen(self, current: SwapStatus) -> None:
        for new in SwapStatus:
            assert is_transition_allowed(current, new) == (new == current)

    def test_actionable_only_advances_locally(self) -> None:
        assert is_transition_allowed(SwapStatus.USER_REFUNDABLE, SwapStatus.USER_REFUNDED)
        assert is_transition_allowed(SwapStatus.USER_CLAIMABLE, SwapStatus.USER_CLAIMED)
        assert not is_transition_allowed(SwapStatus.USER_REFUNDABLE, SwapStatus.SWAP_EXPIRED)
        assert not is_transition_allowed(SwapStatus.USER_REFUNDABLE, SwapStatus.TRANSACTION_MEMPOOL)

    def test_failed_may_resolve_locally(self) -> None:
        assert is_transition_allowed(SwapStatus.SWAP_EXPIRED, SwapStatus.USER_ABANDONED)
        assert is_transition_allowed(SwapStatus.TRANSACTION_LOCKUP_FAILED, SwapStatus.USER_REFUNDABLE)
