from studio_core.rng import (
    ZERO_SEED_REPLACEMENT,
    XorShiftRng,
    normalize_seed,
    rng_from_state,
    stable_int_seed,
    xorshift32,
)


def test_first_draws_from_seed_one_match_reference() -> None:
    rng = XorShiftRng(1)
    assert [rng.next_uint() for _ in range(5)] == [270369, 67634689, 2647435461, 307599695, 2398689233]


def test_zero_seed_is_remapped() -> None:
    assert normalize_seed(0) == 0x9E3779B9 == ZERO_SEED_REPLACEMENT
    rng = XorShiftRng(0)
    assert rng.get_state() == 0x9E3779B9
    assert rng.next_uint() == 1359758873
    assert rng.next_uint() == 3761132862


def test_normalize_seed_handles_odd_inputs() -> None:
    assert normalize_seed(-5) == 5
    assert normalize_seed(3.7) == 3
    assert normalize_seed("12") == 12
    assert normalize_seed("not a number") == ZERO_SEED_REPLACEMENT
    assert normalize_seed(None) == ZERO_SEED_REPLACEMENT
    assert normalize_seed(float("nan")) == ZERO_SEED_REPLACEMENT
    assert normalize_seed(2**32) == ZERO_SEED_REPLACEMENT


def test_state_resumes_the_same_stream() -> None:
    rng = XorShiftRng(99)
    rng.next_uint()
    rng.next_uint()
    resumed = rng_from_state(rng.get_state())
    assert [resumed.next_uint() for _ in range(3)] == [rng.next_uint() for _ in range(3)]


def test_xorshift_never_returns_zero() -> None:
    x = 1
    for _ in range(1000):
        x = xorshift32(x)
        assert 0 < x <= 0xFFFFFFFF


def test_next_int_is_inclusive_and_bounded() -> None:
    rng = XorShiftRng(7)
    seen = {rng.next_int(4, 8) for _ in range(500)}
    assert seen == {4, 5, 6, 7, 8}


def test_pick_weighted_walks_cumulative_weights() -> None:
    rng = XorShiftRng(1)
    items = ["a", "b"]
    # draws from seed 1: ~0.00006, ~0.0157, ~0.616
    assert [rng.pick_weighted(items, lambda _: 1) for _ in range(3)] == ["a", "a", "b"]


def test_pick_weighted_degenerate_inputs() -> None:
    rng = XorShiftRng(1)
    assert rng.pick_weighted(["x", "y"], lambda _: 0) == "x"
    assert rng.pick_weighted([], lambda _: 1) is None
    # zero-total picks consume no draw
    assert rng.get_state() == 1


def test_stable_int_seed_is_stable_and_salted() -> None:
    assert stable_int_seed("hello", 3) == stable_int_seed("hello", 3)
    assert stable_int_seed("hello", 3) != stable_int_seed("hello", 4)
    assert stable_int_seed("hello", salt="a") != stable_int_seed("hello", salt="b")
    assert stable_int_seed("anything") != 0
