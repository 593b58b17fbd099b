"""NumPy-backed math utilities: Vec3 and Quaternion operations.

Vectors are plain numpy arrays; quaternions are [x, y, z, w] arrays,
the same component order the channel layout packs the root rotation in.
"""

import numpy as np
from numpy.typing import ArrayLike, NDArray

# Type aliases
Vec3 = NDArray[np.float64]
Quat = NDArray[np.float64]  # [x, y, z, w]


def vec3(x: float = 0.0, y: float = 0.0, z: float = 0.0) -> Vec3:
    return np.array([x, y, z], dtype=np.float64)


def as_vec3(v: ArrayLike) -> Vec3:
    """Coerce a 3-sequence to a float64 vector, rejecting other shapes."""
    a = np.asarray(v, dtype=np.float64)
    if a.shape != (3,):
        raise ValueError(f"Expected a 3-vector, got shape {a.shape}")
    return a.copy()


def as_quat(q: ArrayLike) -> Quat:
    """Coerce a 4-sequence [x, y, z, w] to a float64 quaternion."""
    a = np.asarray(q, dtype=np.float64)
    if a.shape != (4,):
        raise ValueError(f"Expected a quaternion [x, y, z, w], got shape {a.shape}")
    return a.copy()


# Quaternion operations

def quat_identity() -> Quat:
    return np.array([0.0, 0.0, 0.0, 1.0], dtype=np.float64)


def quat_multiply(a: Quat, b: Quat) -> Quat:
    """Multiply two quaternions (a * b)."""
    ax, ay, az, aw = a
    bx, by, bz, bw = b
    return np.array([
        aw * bx + ax * bw + ay * bz - az * by,
        aw * by - ax * bz + ay * bw + az * bx,
        aw * bz + ax * by - ay * bx + az * bw,
        aw * bw - ax * bx - ay * by - az * bz,
    ], dtype=np.float64)


def quat_conjugate(q: Quat) -> Quat:
    return np.array([-q[0], -q[1], -q[2], q[3]], dtype=np.float64)


def quat_normalize(q: Quat) -> Quat:
    n = np.linalg.norm(q)
    if n < 1e-10:
        return quat_identity()
    return q / n


def quat_rotate_vec3(q: Quat, v: Vec3) -> Vec3:
    """Rotate a vector by a quaternion."""
    qv = q[:3]
    w = q[3]
    t = 2.0 * np.cross(qv, v)
    return v + w * t + np.cross(qv, t)


# Vector transforms

def transform_vector(rotation: Quat, scale: Vec3, v: Vec3) -> Vec3:
    """Local → parent direction transform: scale first, then rotate.

    *rotation* must be a unit quaternion.

    Translation is ignored, matching how engines transform displacement
    vectors between a transform's local space and its parent space.
    """
    return quat_rotate_vec3(rotation, scale * v)


def inverse_transform_vector(rotation: Quat, scale: Vec3, v: Vec3) -> Vec3:
    """Parent → local direction transform, the inverse of :func:`transform_vector`."""
    local = quat_rotate_vec3(quat_conjugate(rotation), v)
    return local / scale
