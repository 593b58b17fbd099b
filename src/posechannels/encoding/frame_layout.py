"""Channel layout: which degree of freedom of which bone lives at which index.

A layout is built once per armature and shared by the sampler (encode) and
the decoder.  Channel space:

    0..2    reserved for non-skeletal channels
    3..14   root position (3..5) and rotation quaternion x, y, z, w (6..9)
    15..    one slot per free axis of every non-root bone, in bone order

Overrides pin a bone's base index to a given slot.  They may only move the
running cursor forward; anything else is a :class:`LayoutError`.
"""

from __future__ import annotations

import logging
from typing import Iterable, Mapping, Optional, Sequence

from posechannels.animation.visemes import (
    VISEME_TABLE, ShapeIndex, decode_table, encode_table,
)
from posechannels.body.armature import Armature
from posechannels.constants import (
    AXIS_NAMES, QUAT_AXIS_NAMES, ROOT_CHANNEL_COUNT, ROOT_CHANNEL_END,
    ROOT_CHANNEL_START, ROOT_POSITION_OFFSET, ROOT_ROTATION_OFFSET,
    VISEME_BASE_INDEX, VISEME_CHANNEL_COUNT,
)

logger = logging.getLogger(__name__)

ROOT_CHANNELS: tuple[int, ...] = tuple(range(ROOT_CHANNEL_START, ROOT_CHANNEL_END))


class LayoutError(ValueError):
    """Inconsistent channel layout configuration."""

    def __init__(self, message: str, bone_index: Optional[int] = None,
                 viseme: Optional[str] = None):
        super().__init__(message)
        self.bone_index = bone_index
        self.viseme = viseme


class ChannelLayout:
    """Per-bone channel lists and base indices, plus blend-shape channels.

    ``channels[i]`` holds local channel ids: axis numbers (0, 1, 2) for
    non-root bones, ``3..14`` for the root.  Use :meth:`global_indices` to
    get the absolute slots a bone writes.
    """

    def __init__(
        self,
        bone_names: Sequence[str],
        channels: Sequence[Sequence[int]],
        base_indices: Sequence[int],
    ) -> None:
        self.bone_names: tuple[str, ...] = tuple(bone_names)
        self.channels: tuple[tuple[int, ...], ...] = tuple(tuple(c) for c in channels)
        self.base_indices: tuple[int, ...] = tuple(base_indices)
        self._shape_indices: list[ShapeIndex] = []
        self._owners = self._build_owner_map()

    def _build_owner_map(self) -> dict[int, int]:
        owners: dict[int, int] = {}
        for i in range(len(self.channels)):
            for idx in self.bone_range(i):
                owners[idx] = i
        return owners

    # ── Bone channels ─────────────────────────────────────────────

    def __len__(self) -> int:
        return len(self.channels)

    def global_indices(self, bone: int) -> tuple[int, ...]:
        """Absolute channel indices written for *bone*, in channel-list order."""
        base = self.base_indices[bone]
        if bone == 0:
            return tuple(base + c for c in self.channels[0])
        return tuple(base + k for k in range(len(self.channels[bone])))

    def bone_range(self, bone: int) -> range:
        if bone == 0:
            base = self.base_indices[0]
            return range(base + ROOT_CHANNEL_START, base + ROOT_CHANNEL_END)
        base = self.base_indices[bone]
        return range(base, base + len(self.channels[bone]))

    def owner_of(self, index: int) -> Optional[int]:
        """Bone occupying a global channel index, or None."""
        return self._owners.get(index)

    @property
    def root_position_indices(self) -> tuple[int, int, int]:
        start = self.base_indices[0] + ROOT_CHANNEL_START + ROOT_POSITION_OFFSET
        return (start, start + 1, start + 2)

    @property
    def root_rotation_indices(self) -> tuple[int, int, int, int]:
        start = self.base_indices[0] + ROOT_CHANNEL_START + ROOT_ROTATION_OFFSET
        return (start, start + 1, start + 2, start + 3)

    @property
    def skeletal_channel_count(self) -> int:
        """One past the highest index used by any bone."""
        return max((r.stop for r in map(self.bone_range, range(len(self)))), default=0)

    @property
    def channel_count(self) -> int:
        """Length of a channel vector that holds every bone and shape channel."""
        count = self.skeletal_channel_count
        for s in self._shape_indices:
            count = max(count, s.index + 1)
        return count

    # ── Shape channels ────────────────────────────────────────────

    @property
    def shape_indices(self) -> tuple[ShapeIndex, ...]:
        return tuple(self._shape_indices)

    def add_shape_indices(self, shape_indices: Iterable[ShapeIndex]) -> None:
        """Append blend-shape channels, rejecting any that land on a bone."""
        new = list(shape_indices)
        for s in new:
            if s.index < 0:
                raise LayoutError(f"Shape '{s.shape}' has negative channel index {s.index}")
            owner = self.owner_of(s.index)
            if owner is not None:
                raise LayoutError(
                    f"Shape '{s.shape}' at channel {s.index} overlaps bone {owner} "
                    f"('{self.bone_names[owner]}')", bone_index=owner)
        self._shape_indices.extend(new)

    def _check_viseme_range(self, base_index: int) -> None:
        for c in range(VISEME_CHANNEL_COUNT):
            owner = self.owner_of(base_index + c)
            if owner is None:
                continue
            viseme = next((v for v, w in VISEME_TABLE if w[c] == 1), VISEME_TABLE[0][0])
            raise LayoutError(
                f"Viseme channel {base_index + c} (viseme '{viseme}') overlaps bone "
                f"{owner} ('{self.bone_names[owner]}')",
                bone_index=owner, viseme=viseme)

    def add_encoder_viseme_shapes(self, base_index: int = VISEME_BASE_INDEX) -> None:
        """Drive the viseme channels from synthesized ``v_<viseme>`` shapes."""
        self._check_viseme_range(base_index)
        self.add_shape_indices(encode_table(base_index))

    def add_decoder_viseme_shapes(self, shape_names: Iterable[str] = (),
                                  base_index: int = VISEME_BASE_INDEX) -> None:
        """Drive the best matching blend shapes on a target mesh from the viseme channels."""
        self._check_viseme_range(base_index)
        self.add_shape_indices(decode_table(shape_names, base_index))

    # ── Naming / serialization ────────────────────────────────────

    def channel_names(self, armature: Armature) -> list[str]:
        """Human-readable name per global channel; empty for unused slots."""
        names = [""] * self.channel_count
        root = self.bone_names[0]
        for j, idx in enumerate(self.root_position_indices):
            names[idx] = f"{root}.T.{AXIS_NAMES[j]}"
        for j, idx in enumerate(self.root_rotation_indices):
            names[idx] = f"{root}.Q.{QUAT_AXIS_NAMES[j]}"
        for i in range(1, len(self)):
            for axis, idx in zip(self.channels[i], self.global_indices(i)):
                names[idx] = armature.muscle_names[armature.axis_muscles[i, axis]]
        for s in self._shape_indices:
            names[s.index] = f"{names[s.index]}+{s.shape}" if names[s.index] else s.shape
        return names

    def to_dict(self) -> dict:
        return {
            "bones": [
                {"name": n, "base_index": b, "channels": list(c)}
                for n, b, c in zip(self.bone_names, self.base_indices, self.channels)
            ],
            "shapes": [s._asdict() for s in self._shape_indices],
            "channel_count": self.channel_count,
        }


def build_layout(armature: Armature,
                 overrides: Optional[Mapping[int, int]] = None) -> ChannelLayout:
    """Assign channel slots to every bone of *armature*.

    Parameters
    ----------
    armature : Armature
        Topologically ordered skeleton.
    overrides : Mapping[int, int], optional
        Bone index → forced base index.  Looked up per bone, never iterated
        for ordering.

    Raises
    ------
    LayoutError
        If an override targets an unknown bone or the root, or would move
        the cursor backwards onto an already assigned range.
    """
    overrides = overrides or {}
    n = len(armature)
    for bone_index, target in overrides.items():
        if not 0 <= bone_index < n:
            raise LayoutError(
                f"Override targets bone {bone_index}, armature has {n} bones",
                bone_index=bone_index)
        if bone_index == 0:
            raise LayoutError(
                f"Root bone 0 cannot be overridden; it always occupies channels "
                f"{ROOT_CHANNEL_START}..{ROOT_CHANNEL_END - 1}", bone_index=0)
        if target < 0:
            raise LayoutError(
                f"Override for bone {bone_index} has negative base index {target}",
                bone_index=bone_index)

    channels: list[tuple[int, ...]] = []
    base_indices: list[int] = []
    slot = 0
    for bone in armature:
        i = bone.index
        if i == 0:
            chan = ROOT_CHANNELS
            base_indices.append(slot)
            slot += ROOT_CHANNEL_START + ROOT_CHANNEL_COUNT
            channels.append(chan)
            continue

        chan = bone.limits.free_axes()
        if i in overrides:
            target = overrides[i]
            if target < slot:
                raise LayoutError(
                    f"Override for bone {i} ('{bone.name}') sets base index {target}, "
                    f"below the next free channel {slot}", bone_index=i)
            slot = target
        base_indices.append(slot)
        slot += len(chan)
        channels.append(chan)

    layout = ChannelLayout(armature.names, channels, base_indices)
    logger.debug("Built channel layout: %d bones, %d skeletal channels, %d overrides",
                 n, layout.skeletal_channel_count, len(overrides))
    return layout
