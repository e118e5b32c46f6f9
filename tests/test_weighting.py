import numpy as np
import pytest

from cocktail_bf.pipeline.weighting import channel_weights, inverse_distance_weights


@pytest.mark.parametrize("wp", [0.25, 0.5, 1.0, 2.0, 3.0])
def test_single_unit_weight_at_closest_channel(wp):
    distances = np.array([2.1, 0.9, 1.7, 3.2])
    weights, closest = channel_weights(distances, wp)
    assert closest == 1
    assert weights[1] == 1.0
    assert np.count_nonzero(weights == 1.0) == 1
    others = np.delete(weights, 1)
    assert np.all(others > 0) and np.all(others <= 1.0)


def test_zero_exponent_gives_uniform_weights():
    weights, closest = channel_weights(np.array([0.4, 2.0, 5.0]), 0.0)
    np.testing.assert_array_equal(weights, np.ones(3))
    assert closest == 0


def test_inverse_distance_with_unit_exponent():
    weights, _ = channel_weights(np.array([1.0, 2.0, 4.0]), 1.0)
    np.testing.assert_allclose(weights, [1.0, 0.5, 0.25])


def test_positive_exponent_sharpens_emphasis():
    d = np.array([1.0, 2.0, 3.0])
    w1, _ = channel_weights(d, 1.0)
    w2, _ = channel_weights(d, 2.0)
    assert np.all(w2[1:] < w1[1:])


def test_negative_exponent_favours_distant_channels():
    weights, closest = channel_weights(np.array([1.0, 2.0, 4.0]), -1.0)
    assert closest == 0
    assert weights[0] == 1.0
    assert weights[2] > weights[1] > weights[0]


def test_zero_distance_is_finite():
    weights, closest = channel_weights(np.array([0.0, 1.0]), 1.0)
    assert closest == 0
    assert np.all(np.isfinite(weights))


def test_invalid_distances_rejected():
    with pytest.raises(ValueError):
        inverse_distance_weights(np.array([1.0, -0.5]))
    with pytest.raises(ValueError):
        inverse_distance_weights(np.array([]))
