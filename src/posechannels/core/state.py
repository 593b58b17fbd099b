"""Per-frame pose state and the runtime frame a skeleton is embedded in."""

from dataclasses import dataclass, field

import numpy as np
from numpy.typing import NDArray

from posechannels.core.math_utils import (
    Quat, Vec3, as_quat, as_vec3, quat_identity, quat_normalize, vec3,
)


@dataclass
class RigFrame:
    """Where the armature sits in the world at sampling time.

    ``position``, ``rotation`` and ``scale`` describe the armature's own
    object transform (scale is the lossy world scale); the rotation is
    normalized on construction.  ``human_scale`` is the skeleton's overall
    size factor and ``root_parent_scale`` the accumulated lossy scale of
    the root bone's parent.
    """
    position: Vec3 = field(default_factory=vec3)
    rotation: Quat = field(default_factory=quat_identity)
    scale: Vec3 = field(default_factory=lambda: vec3(1, 1, 1))
    human_scale: float = 1.0
    root_parent_scale: Vec3 = field(default_factory=lambda: vec3(1, 1, 1))

    def __post_init__(self) -> None:
        self.position = as_vec3(self.position)
        rotation = as_quat(self.rotation)
        if np.linalg.norm(rotation) < 1e-10:
            raise ValueError("RigFrame: rotation must be a non-zero quaternion")
        self.rotation = quat_normalize(rotation)
        self.scale = as_vec3(self.scale)
        self.root_parent_scale = as_vec3(self.root_parent_scale)
        if self.human_scale == 0.0:
            raise ValueError("RigFrame: human_scale must be non-zero")
        if np.any(self.scale == 0.0) or np.any(self.root_parent_scale == 0.0):
            raise ValueError("RigFrame: scale components must be non-zero")


@dataclass
class PoseSample:
    """One frame of solved pose.

    ``muscles`` holds one normalized actuation value per free joint axis,
    indexed by the armature's axis → muscle table.  ``shape_weights`` maps
    facial blend-shape names to weights.
    """
    root_position: Vec3 = field(default_factory=vec3)
    root_rotation: Quat = field(default_factory=quat_identity)
    muscles: NDArray[np.float64] = field(default_factory=lambda: np.zeros(0))
    shape_weights: dict[str, float] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.root_position = as_vec3(self.root_position)
        self.root_rotation = as_quat(self.root_rotation)
        self.muscles = np.asarray(self.muscles, dtype=np.float64).reshape(-1)

    @classmethod
    def rest(cls, muscle_count: int) -> "PoseSample":
        """A pose at the origin with every actuation value at zero."""
        return cls(muscles=np.zeros(muscle_count, dtype=np.float64))
