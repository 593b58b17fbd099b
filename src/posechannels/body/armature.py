"""Static skeleton description: bones, parent links and per-axis limits.

An :class:`Armature` is built once per skeleton topology and never mutated.
At construction it validates the bone ordering and computes the
(bone, axis) → actuation index table that pose samples are indexed by.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterator, Optional, Sequence

import numpy as np
from numpy.typing import NDArray

from posechannels.constants import AXIS_NAMES


class ArmatureError(ValueError):
    """Malformed armature definition."""

    def __init__(self, message: str, bone_index: Optional[int] = None):
        super().__init__(message)
        self.bone_index = bone_index


@dataclass(frozen=True)
class AxisLimits:
    """Signed range of motion per local axis (x, y, z), in degrees."""
    min: tuple[float, float, float] = (0.0, 0.0, 0.0)
    max: tuple[float, float, float] = (0.0, 0.0, 0.0)

    def __post_init__(self) -> None:
        object.__setattr__(self, "min", tuple(float(v) for v in self.min))
        object.__setattr__(self, "max", tuple(float(v) for v in self.max))
        if len(self.min) != 3 or len(self.max) != 3:
            raise ValueError("AxisLimits: min and max must have 3 components")

    @classmethod
    def free(cls, span: float = 1.0) -> "AxisLimits":
        return cls((-span, -span, -span), (span, span, span))

    @classmethod
    def from_dict(cls, d: dict[str, Sequence[float]]) -> "AxisLimits":
        """Build from ``{"x": [min, max], ...}``; missing axes are locked."""
        lo, hi = [0.0, 0.0, 0.0], [0.0, 0.0, 0.0]
        for j, axis in enumerate(AXIS_NAMES):
            if axis in d:
                lo[j], hi[j] = d[axis]
        return cls(tuple(lo), tuple(hi))

    def to_dict(self) -> dict[str, list[float]]:
        return {
            axis: [self.min[j], self.max[j]]
            for j, axis in enumerate(AXIS_NAMES)
            if not self.is_locked(j)
        }

    def range(self, axis: int) -> float:
        return self.max[axis] - self.min[axis]

    def is_locked(self, axis: int) -> bool:
        return self.range(axis) == 0.0

    def free_axes(self) -> tuple[int, ...]:
        return tuple(j for j in range(3) if not self.is_locked(j))


@dataclass(frozen=True)
class Bone:
    """One bone of an armature."""
    index: int
    name: str
    parent: int = -1
    limits: AxisLimits = field(default_factory=AxisLimits)
    # Optional per-axis actuation names; None entries fall back to "<bone> <axis>"
    muscle_names: tuple[Optional[str], Optional[str], Optional[str]] = (None, None, None)

    @property
    def is_root(self) -> bool:
        return self.parent < 0


class Armature:
    """Ordered, topologically sorted bone list.

    Invariants (checked on construction, :class:`ArmatureError` otherwise):
    bone 0 is the unique root, every other bone's parent index is lower
    than its own, indices match positions and names are unique.
    """

    def __init__(self, bones: Sequence[Bone]):
        self._bones: tuple[Bone, ...] = tuple(bones)
        self._validate()
        self._by_name = {b.name: b.index for b in self._bones}
        self._axis_muscles, self._muscle_names = self._build_muscle_table()

    def _validate(self) -> None:
        if not self._bones:
            raise ArmatureError("Armature must contain at least one bone")
        names: set[str] = set()
        for i, bone in enumerate(self._bones):
            if bone.index != i:
                raise ArmatureError(
                    f"Bone {i} ('{bone.name}') declares index {bone.index}", i)
            if bone.name in names:
                raise ArmatureError(f"Bone {i}: duplicate name '{bone.name}'", i)
            names.add(bone.name)
            if i == 0:
                if bone.parent != -1:
                    raise ArmatureError(
                        f"Bone 0 ('{bone.name}') must be the root (parent -1), "
                        f"got parent {bone.parent}", 0)
            elif not 0 <= bone.parent < i:
                raise ArmatureError(
                    f"Bone {i} ('{bone.name}') has parent {bone.parent}; "
                    f"parents must precede their children", i)

    def _build_muscle_table(self) -> tuple[NDArray[np.intp], tuple[str, ...]]:
        """Assign an actuation index to every free axis of every non-root bone."""
        table = np.full((len(self._bones), 3), -1, dtype=np.intp)
        names: list[str] = []
        for bone in self._bones[1:]:
            for j in bone.limits.free_axes():
                table[bone.index, j] = len(names)
                names.append(bone.muscle_names[j] or f"{bone.name} {AXIS_NAMES[j]}")
        table.setflags(write=False)
        return table, tuple(names)

    # ── Queries ───────────────────────────────────────────────────

    def __len__(self) -> int:
        return len(self._bones)

    def __iter__(self) -> Iterator[Bone]:
        return iter(self._bones)

    def __getitem__(self, index: int) -> Bone:
        return self._bones[index]

    @property
    def bones(self) -> tuple[Bone, ...]:
        return self._bones

    @property
    def root(self) -> Bone:
        return self._bones[0]

    @property
    def parents(self) -> tuple[int, ...]:
        return tuple(b.parent for b in self._bones)

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(b.name for b in self._bones)

    @property
    def axis_muscles(self) -> NDArray[np.intp]:
        """Read-only ``(N, 3)`` table of actuation indices, -1 where none."""
        return self._axis_muscles

    @property
    def muscle_count(self) -> int:
        return len(self._muscle_names)

    @property
    def muscle_names(self) -> tuple[str, ...]:
        return self._muscle_names

    def index_of(self, name: str) -> int:
        try:
            return self._by_name[name]
        except KeyError:
            raise KeyError(f"No bone named '{name}'") from None

    def free_axes(self, index: int) -> tuple[int, ...]:
        """Free local axes of a non-root bone (the root is always fully free)."""
        if index == 0:
            return (0, 1, 2)
        return self._bones[index].limits.free_axes()

    def children(self, index: int) -> list[int]:
        return [b.index for b in self._bones if b.parent == index]

    # ── Serialization ─────────────────────────────────────────────

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Armature":
        """Build from ``{"bones": [{"name", "parent", "limits", "muscles"}]}``.

        ``parent`` may be a bone name, an index, or null for the root.
        """
        entries = data.get("bones", [])
        index_by_name: dict[str, int] = {}
        bones = []
        for i, entry in enumerate(entries):
            name = entry["name"]
            parent = entry.get("parent")
            if parent is None:
                parent_index = -1
            elif isinstance(parent, str):
                if parent not in index_by_name:
                    raise ArmatureError(
                        f"Bone {i} ('{name}') references parent '{parent}' "
                        f"which is not defined before it", i)
                parent_index = index_by_name[parent]
            else:
                parent_index = int(parent)
            muscles = entry.get("muscles", {})
            bones.append(Bone(
                index=i,
                name=name,
                parent=parent_index,
                limits=AxisLimits.from_dict(entry.get("limits", {})),
                muscle_names=tuple(muscles.get(a) for a in AXIS_NAMES),
            ))
            index_by_name[name] = i
        return cls(bones)

    def to_dict(self) -> dict[str, Any]:
        bones = []
        for b in self._bones:
            entry: dict[str, Any] = {
                "name": b.name,
                "parent": self._bones[b.parent].name if b.parent >= 0 else None,
            }
            limits = b.limits.to_dict()
            if limits:
                entry["limits"] = limits
            muscles = {a: n for a, n in zip(AXIS_NAMES, b.muscle_names) if n}
            if muscles:
                entry["muscles"] = muscles
            bones.append(entry)
        return {"bones": bones}
