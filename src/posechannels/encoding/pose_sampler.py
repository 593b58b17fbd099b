"""Per-frame pose sampling: PoseSample → channel vector, and back.

Root position is stored in the armature's local frame:

    encoded = inverse_transform(frame, root_parent_scale * (position * human_scale - frame.position))

so a consumer can rebuild the root transform from fixed offsets 3..9
without consulting the layout.  Joint actuation values are copied verbatim
(no clamping); normalizing them is the caller's job.

Channels that are never written (locked axes, unbound bones, the spare
root slots 10..14) hold ``fill_value``, 0.0 unless configured otherwise.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional, Union

import numpy as np
from numpy.typing import NDArray

from posechannels.body.armature import Armature
from posechannels.constants import DEFAULT_FILL_VALUE
from posechannels.core.math_utils import (
    Quat, Vec3, inverse_transform_vector, quat_conjugate, quat_multiply,
    transform_vector,
)
from posechannels.core.state import PoseSample, RigFrame
from posechannels.encoding.frame_layout import ChannelLayout

logger = logging.getLogger(__name__)

ChannelVector = NDArray[np.float64]
BoneRef = Union[int, str]


# ── Root transform convention ─────────────────────────────────────────

def encode_root_position(position: Vec3, frame: RigFrame) -> Vec3:
    """World-space root position → armature-local encoded position."""
    offset = position * frame.human_scale - frame.position
    return inverse_transform_vector(frame.rotation, frame.scale,
                                    frame.root_parent_scale * offset)


def decode_root_position(encoded: Vec3, frame: RigFrame) -> Vec3:
    """Inverse of :func:`encode_root_position`."""
    offset = transform_vector(frame.rotation, frame.scale, encoded) / frame.root_parent_scale
    return (offset + frame.position) / frame.human_scale


def encode_root_rotation(rotation: Quat, frame: RigFrame) -> Quat:
    """World-space root rotation → rotation relative to the armature frame."""
    return quat_multiply(quat_conjugate(frame.rotation), rotation)


def decode_root_rotation(encoded: Quat, frame: RigFrame) -> Quat:
    return quat_multiply(frame.rotation, encoded)


# ── Sampler ───────────────────────────────────────────────────────────

class PoseSampler:
    """Encodes pose samples of one skeleton into channel vectors.

    Parameters
    ----------
    armature : Armature
        Static skeleton the layout was built from.
    layout : ChannelLayout
        Channel assignment for *armature*.
    frame : RigFrame, optional
        Runtime embedding of the skeleton; identity by default.
    bound : iterable of bone indices or names, optional
        Bones present on the runtime skeleton.  All bones when omitted.
        The root must be bound.
    fill_value : float
        Value of channels that are never written.
    """

    def __init__(
        self,
        armature: Armature,
        layout: ChannelLayout,
        frame: Optional[RigFrame] = None,
        bound: Optional[Iterable[BoneRef]] = None,
        fill_value: float = DEFAULT_FILL_VALUE,
    ) -> None:
        if len(layout) != len(armature):
            raise ValueError(
                f"Layout has {len(layout)} bones but armature has {len(armature)}")
        self.armature = armature
        self.layout = layout
        self.frame = frame or RigFrame()
        self.fill_value = float(fill_value)

        self._bound = self._resolve_bound(bound)
        self._dst, self._src = self._build_gather_plan()

        unbound = [armature[i].name for i in range(len(armature)) if not self._bound[i]]
        if unbound:
            logger.debug("Sampler skips %d unbound bones: %s", len(unbound), ", ".join(unbound))

    def _resolve_bound(self, bound: Optional[Iterable[BoneRef]]) -> NDArray[np.bool_]:
        mask = np.ones(len(self.armature), dtype=bool)
        if bound is None:
            return mask
        mask[:] = False
        for ref in bound:
            i = self.armature.index_of(ref) if isinstance(ref, str) else int(ref)
            if not 0 <= i < len(self.armature):
                raise ValueError(f"Bound bone index {i} out of range")
            mask[i] = True
        if not mask[0]:
            raise ValueError(f"Root bone 0 ('{self.armature.root.name}') must be bound")
        return mask

    def _build_gather_plan(self) -> tuple[NDArray[np.intp], NDArray[np.intp]]:
        """Channel index ← muscle index pairs for every bound, free bone axis."""
        dst: list[int] = []
        src: list[int] = []
        table = self.armature.axis_muscles
        for i in range(1, len(self.armature)):
            if not self._bound[i]:
                continue
            for axis, idx in zip(self.layout.channels[i], self.layout.global_indices(i)):
                dst.append(idx)
                src.append(int(table[i, axis]))
        return np.array(dst, dtype=np.intp), np.array(src, dtype=np.intp)

    def is_bound(self, bone: BoneRef) -> bool:
        """Whether *bone* is present on the runtime skeleton."""
        i = self.armature.index_of(bone) if isinstance(bone, str) else int(bone)
        if not 0 <= i < len(self.armature):
            raise ValueError(f"Bone index {i} out of range")
        return bool(self._bound[i])

    @property
    def channel_count(self) -> int:
        return self.layout.channel_count

    def sample(self, pose: PoseSample, frame: Optional[RigFrame] = None) -> ChannelVector:
        """Encode *pose* into a fresh channel vector."""
        if pose.muscles.shape[0] != self.armature.muscle_count:
            raise ValueError(
                f"Pose has {pose.muscles.shape[0]} actuation values, "
                f"armature expects {self.armature.muscle_count}")
        frame = frame or self.frame
        layout = self.layout

        values = np.full(layout.channel_count, self.fill_value, dtype=np.float64)
        values[list(layout.root_position_indices)] = encode_root_position(pose.root_position, frame)
        values[list(layout.root_rotation_indices)] = encode_root_rotation(pose.root_rotation, frame)
        values[self._dst] = pose.muscles[self._src]

        touched: set[int] = set()
        for s in layout.shape_indices:
            if s.index not in touched:
                values[s.index] = 0.0
                touched.add(s.index)
            values[s.index] += s.weight * pose.shape_weights.get(s.shape, 0.0)
        return values

    def decode(self, values: ChannelVector, frame: Optional[RigFrame] = None) -> PoseSample:
        """Rebuild a pose from a channel vector.

        Actuation values of unbound bones come back as NaN.  Each shape
        weight is read from the first channel the shape drives.
        """
        values = np.asarray(values, dtype=np.float64)
        if values.shape[0] < self.layout.skeletal_channel_count:
            raise ValueError(
                f"Channel vector has {values.shape[0]} channels, layout needs "
                f"{self.layout.skeletal_channel_count}")
        frame = frame or self.frame
        layout = self.layout

        muscles = np.full(self.armature.muscle_count, np.nan, dtype=np.float64)
        muscles[self._src] = values[self._dst]

        shape_weights: dict[str, float] = {}
        for s in layout.shape_indices:
            if s.weight != 0 and s.shape not in shape_weights and s.index < values.shape[0]:
                shape_weights[s.shape] = float(values[s.index] / s.weight)

        return PoseSample(
            root_position=decode_root_position(values[list(layout.root_position_indices)], frame),
            root_rotation=decode_root_rotation(values[list(layout.root_rotation_indices)], frame),
            muscles=muscles,
            shape_weights=shape_weights,
        )


def sample_pose(
    pose: PoseSample,
    layout: ChannelLayout,
    armature: Armature,
    frame: Optional[RigFrame] = None,
    bound: Optional[Iterable[BoneRef]] = None,
    fill_value: float = DEFAULT_FILL_VALUE,
) -> ChannelVector:
    """One-shot encode; build a :class:`PoseSampler` to sample many frames."""
    return PoseSampler(armature, layout, frame, bound, fill_value).sample(pose)


def decode_pose(
    values: ChannelVector,
    layout: ChannelLayout,
    armature: Armature,
    frame: Optional[RigFrame] = None,
    bound: Optional[Iterable[BoneRef]] = None,
) -> PoseSample:
    """One-shot decode, the inverse of :func:`sample_pose`."""
    return PoseSampler(armature, layout, frame, bound).decode(values)
