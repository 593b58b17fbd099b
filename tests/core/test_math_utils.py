"""Tests for math_utils module."""

import numpy as np
import pytest

from posechannels.core.math_utils import (
    vec3, as_vec3, as_quat,
    quat_identity, quat_multiply, quat_conjugate, quat_normalize, quat_rotate_vec3,
    transform_vector, inverse_transform_vector,
)


def _quarter_turn_z():
    s = np.sqrt(0.5)
    return np.array([0.0, 0.0, s, s])


def test_vec3():
    v = vec3(1, 2, 3)
    assert v.shape == (3,)
    np.testing.assert_array_equal(v, [1, 2, 3])


def test_as_vec3_copies():
    src = np.array([1.0, 2.0, 3.0])
    v = as_vec3(src)
    v[0] = 9.0
    assert src[0] == 1.0


def test_as_vec3_rejects_wrong_shape():
    with pytest.raises(ValueError):
        as_vec3([1.0, 2.0])


def test_as_quat_rejects_wrong_shape():
    with pytest.raises(ValueError):
        as_quat([0.0, 0.0, 1.0])


def test_quat_identity():
    q = quat_identity()
    np.testing.assert_array_equal(q, [0, 0, 0, 1])


def test_quat_rotate_quarter_turn():
    v = quat_rotate_vec3(_quarter_turn_z(), vec3(1, 0, 0))
    np.testing.assert_array_almost_equal(v, [0, 1, 0], decimal=10)


def test_quat_multiply_identity():
    q = _quarter_turn_z()
    result = quat_multiply(q, quat_identity())
    np.testing.assert_array_almost_equal(result, q)


def test_quat_multiply_composes():
    q = _quarter_turn_z()
    half = quat_multiply(q, q)
    np.testing.assert_array_almost_equal(half, [0, 0, 1, 0])


def test_quat_conjugate_inverts_rotation():
    q = quat_normalize(np.array([0.2, -0.3, 0.5, 0.8]))
    result = quat_multiply(quat_conjugate(q), q)
    np.testing.assert_array_almost_equal(result, quat_identity())


def test_quat_normalize():
    q = quat_normalize(np.array([0.0, 0.0, 0.0, 2.0]))
    np.testing.assert_array_equal(q, [0, 0, 0, 1])


def test_quat_normalize_zero():
    np.testing.assert_array_equal(quat_normalize(np.zeros(4)), quat_identity())


def test_transform_vector_scales_then_rotates():
    v = transform_vector(_quarter_turn_z(), vec3(2, 1, 1), vec3(1, 0, 0))
    np.testing.assert_array_almost_equal(v, [0, 2, 0], decimal=10)


def test_inverse_transform_vector_roundtrip():
    q = quat_normalize(np.array([0.1, -0.4, 0.6, 0.7]))
    scale = vec3(2.0, 0.5, 3.0)
    v = vec3(1.5, -2.0, 0.25)
    back = inverse_transform_vector(q, scale, transform_vector(q, scale, v))
    np.testing.assert_array_almost_equal(back, v, decimal=10)
