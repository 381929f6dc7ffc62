import pytest

from studio_core.allocation import normalize_integer_allocations, sum_allocations
from studio_core.state import Allocations


def test_request_under_limit_passes_through() -> None:
    assert normalize_integer_allocations({"feature": 5, "qa": 3}, 20) == Allocations(feature=5, qa=3)


def test_over_request_uses_whole_limit_with_largest_remainders() -> None:
    alloc = normalize_integer_allocations({"feature": 8, "refactor": 6, "marketing": 4, "qa": 6}, 23)
    assert alloc == Allocations(feature=7, refactor=6, marketing=4, qa=6)
    assert alloc.total() == 23


def test_remainder_ties_keep_lane_order() -> None:
    alloc = normalize_integer_allocations({"feature": 1, "refactor": 1, "marketing": 1, "qa": 1}, 2)
    assert alloc == Allocations(feature=1, refactor=1, marketing=0, qa=0)


def test_negative_fractional_and_garbage_lanes_are_sanitized() -> None:
    alloc = normalize_integer_allocations({"feature": -4, "refactor": 2.9, "marketing": "x", "qa": None}, 10)
    assert alloc == Allocations(refactor=2)


def test_zero_limit_zeroes_everything() -> None:
    assert normalize_integer_allocations({"feature": 9}, 0) == Allocations()
    assert normalize_integer_allocations({"feature": 9}, -3) == Allocations()


@pytest.mark.parametrize("limit", [1, 3, 7, 23, 34, 100])
@pytest.mark.parametrize(
    "request_",
    [
        {"feature": 50, "refactor": 0, "marketing": 0, "qa": 0},
        {"feature": 13, "refactor": 11, "marketing": 7, "qa": 5},
        {"feature": 2, "refactor": 2, "marketing": 2, "qa": 2},
        {"feature": 0.5, "refactor": 99.9, "marketing": 3, "qa": 1},
    ],
)
def test_sum_never_exceeds_limit_and_fills_it_when_over(limit, request_) -> None:
    alloc = normalize_integer_allocations(request_, limit)
    assert alloc.total() <= limit
    if sum_allocations(request_) >= limit:
        assert alloc.total() == limit
