import math

import numpy as np
import pytest

from fraud_model import (
    InvalidParameterError,
    SimulationParams,
    compute_loss_statistics,
    make_rng,
    normal_variate,
    normal_variates,
    simulate,
    simulate_monthly_losses,
)


class ScriptedSource:
    """Uniform source that replays fixed values, then falls back to a seeded generator."""

    def __init__(self, values, seed=0):
        self.values = list(values)
        self.fallback = np.random.default_rng(seed)
        self.calls = 0

    def _next(self):
        self.calls += 1
        if self.values:
            return self.values.pop(0)
        return self.fallback.random()

    def random(self, size=None):
        if size is None:
            return self._next()
        return np.array([self._next() for _ in range(size)])


@pytest.fixture(scope="module")
def baseline_result():
    params = SimulationParams(num_simulations=2000, avg_events=150, avg_loss=350, volatility=40)
    return simulate(params, make_rng(7))


def test_normal_variate_box_muller_value():
    src = ScriptedSource([0.5, 0.25])
    # cos(pi / 2) == 0 up to rounding
    assert normal_variate(src, 10.0, 3.0) == pytest.approx(10.0)

    src = ScriptedSource([math.exp(-0.5), 0.0 + 1e-12])
    # u1 = e^-0.5 -> sqrt(-2 ln u1) == 1, u2 ~ 0 -> cos ~ 1
    assert normal_variate(src, 0.0, 2.0) == pytest.approx(2.0)


def test_normal_variate_redraws_zero_uniforms():
    src = ScriptedSource([0.0, 0.0, 0.5, 0.0, 0.25])
    value = normal_variate(src, 1.0, 1.0)
    assert math.isfinite(value)
    assert src.calls == 5


def test_normal_variates_redraws_zero_entries():
    src = ScriptedSource([0.0, 0.3, 0.0, 0.6, 0.2, 0.2, 0.9, 0.4])
    values = normal_variates(src, 0.0, 1.0, 3)
    assert values.shape == (3,)
    assert np.all(np.isfinite(values))


def test_normal_variates_zero_std_returns_mean():
    values = normal_variates(make_rng(1), 42.0, 0.0, 100)
    assert np.all(values == 42.0)


def test_normal_variates_moments():
    values = normal_variates(make_rng(3), 5.0, 2.0, 200_000)
    assert values.mean() == pytest.approx(5.0, abs=0.05)
    assert values.std() == pytest.approx(2.0, abs=0.05)


def test_deterministic_for_same_seed():
    params = SimulationParams(num_simulations=500, avg_events=120, avg_loss=300, volatility=50)
    a = simulate(params, make_rng(123))
    b = simulate(params, make_rng(123))
    assert np.array_equal(a.monthly_losses, b.monthly_losses)
    assert a.mean == b.mean
    assert a.median == b.median
    assert a.std_dev == b.std_dev
    assert a.percentiles == b.percentiles


def test_losses_sorted_and_sized(baseline_result):
    losses = baseline_result.monthly_losses
    assert losses.size == 2000
    assert np.all(losses[:-1] <= losses[1:])


def test_percentiles_monotone_and_complete(baseline_result):
    p = baseline_result.percentiles
    assert sorted(p) == list(range(1, 100))
    for rank in range(1, 99):
        assert p[rank] <= p[rank + 1]


def test_median_matches_p50(baseline_result):
    assert baseline_result.percentiles[50] == baseline_result.median


def test_losses_non_negative():
    params = SimulationParams(num_simulations=1000, avg_events=5, avg_loss=100, volatility=300)
    result = simulate(params, make_rng(11))
    assert np.all(result.monthly_losses >= 0)


def test_zero_events_gives_zero_losses():
    params = SimulationParams(num_simulations=250, avg_events=0, avg_loss=350, volatility=40)
    result = simulate(params, make_rng(5))
    assert np.all(result.monthly_losses == 0)
    assert result.mean == 0
    assert result.median == 0
    assert result.std_dev == 0
    assert all(v == 0 for v in result.percentiles.values())


def test_single_trial_zero_events():
    params = SimulationParams(num_simulations=1, avg_events=0, avg_loss=100, volatility=10)
    result = simulate(params, make_rng(0))
    assert result.monthly_losses.tolist() == [0.0]
    assert (result.mean, result.median, result.std_dev) == (0.0, 0.0, 0.0)
    assert set(result.percentiles.values()) == {0.0}


def test_zero_avg_loss_gives_zero_losses():
    params = SimulationParams(num_simulations=100, avg_events=50, avg_loss=0, volatility=40)
    result = simulate(params, make_rng(9))
    assert result.mean == 0


def test_mean_close_to_expected_total():
    params = SimulationParams(num_simulations=10000, avg_events=150, avg_loss=350, volatility=40)
    for seed in (1, 2, 3):
        result = simulate(params, make_rng(seed))
        assert abs(result.mean - 52500) / 52500 < 0.10


def test_default_rng_is_used_when_omitted():
    params = SimulationParams(num_simulations=10, avg_events=3, avg_loss=10, volatility=10)
    result = simulate(params)
    assert result.monthly_losses.size == 10


def test_simulate_monthly_losses_unsorted_length():
    params = SimulationParams(num_simulations=64, avg_events=20, avg_loss=50, volatility=20)
    losses = simulate_monthly_losses(params, make_rng(2))
    assert losses.shape == (64,)
    assert losses.dtype == float


def test_statistics_on_known_sample():
    result = compute_loss_statistics([4.0, 1.0, 3.0, 2.0])
    assert result.monthly_losses.tolist() == [1.0, 2.0, 3.0, 4.0]
    assert result.mean == 2.5
    # upper-middle element for even n
    assert result.median == 3.0
    assert result.std_dev == pytest.approx(math.sqrt(1.25))
    assert result.percentiles[1] == 1.0
    assert result.percentiles[25] == 2.0
    assert result.percentiles[50] == 3.0
    assert result.percentiles[74] == 3.0
    assert result.percentiles[75] == 4.0
    assert result.percentiles[99] == 4.0


def test_percentile_nearest_rank_index():
    values = list(range(200))
    result = compute_loss_statistics(values)
    assert result.percentiles[10] == 20.0
    assert result.percentiles[99] == 198.0
    assert result.median == 100.0


def test_result_is_read_only():
    result = compute_loss_statistics([1.0, 2.0])
    with pytest.raises(ValueError):
        result.monthly_losses[0] = 5.0


def test_statistics_empty_sample_rejected():
    with pytest.raises(InvalidParameterError):
        compute_loss_statistics([])


@pytest.mark.parametrize(
    "kwargs",
    [
        dict(num_simulations=0, avg_events=1, avg_loss=1, volatility=1),
        dict(num_simulations=-5, avg_events=1, avg_loss=1, volatility=1),
        dict(num_simulations=2.5, avg_events=1, avg_loss=1, volatility=1),
        dict(num_simulations=10, avg_events=-1, avg_loss=1, volatility=1),
        dict(num_simulations=10, avg_events=1, avg_loss=-0.01, volatility=1),
        dict(num_simulations=10, avg_events=1, avg_loss=1, volatility=float("nan")),
        dict(num_simulations=10, avg_events=float("inf"), avg_loss=1, volatility=1),
    ],
)
def test_invalid_params_rejected(kwargs):
    with pytest.raises(InvalidParameterError):
        simulate(SimulationParams(**kwargs), make_rng(0))


def test_event_losses_drawn_in_bounded_chunks(monkeypatch):
    import fraud_model

    sizes = []
    real_normal_variates = fraud_model.normal_variates

    def recording(rng, mean, std_dev, size):
        sizes.append(size)
        return real_normal_variates(rng, mean, std_dev, size)

    monkeypatch.setattr(fraud_model, "EVENT_CHUNK_SIZE", 500)
    monkeypatch.setattr(fraud_model, "normal_variates", recording)

    params = SimulationParams(num_simulations=200, avg_events=40, avg_loss=100, volatility=30)
    losses = simulate_monthly_losses(params, make_rng(4))

    # First call draws the event counts, one per month
    assert sizes[0] == 200
    assert len(sizes) > 2
    assert max(sizes[1:]) <= 500
    assert losses.shape == (200,)
    assert np.all(losses >= 0)


def test_chunking_keeps_monthly_totals(monkeypatch):
    import fraud_model

    # Zero volatility makes every event worth exactly avg_loss
    params = SimulationParams(num_simulations=300, avg_events=25, avg_loss=80, volatility=0)
    whole = simulate_monthly_losses(params, make_rng(8))

    monkeypatch.setattr(fraud_model, "EVENT_CHUNK_SIZE", 37)
    chunked = simulate_monthly_losses(params, make_rng(8))

    assert np.array_equal(whole, chunked)
    assert np.allclose(whole % 80, 0)


def test_chunked_run_is_deterministic(monkeypatch):
    import fraud_model

    monkeypatch.setattr(fraud_model, "EVENT_CHUNK_SIZE", 100)
    params = SimulationParams(num_simulations=150, avg_events=30, avg_loss=200, volatility=50)
    a = simulate(params, make_rng(21))
    b = simulate(params, make_rng(21))
    assert np.array_equal(a.monthly_losses, b.monthly_losses)
