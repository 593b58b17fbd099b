"""Tests for per-frame pose sampling and decoding."""

import numpy as np
import pytest

from posechannels.body.armature import Armature, AxisLimits, Bone
from posechannels.body.humanoid import DEFAULT_OVERRIDES, load_humanoid_armature
from posechannels.core.math_utils import quat_identity, quat_normalize, vec3
from posechannels.core.state import PoseSample, RigFrame
from posechannels.encoding.frame_layout import build_layout
from posechannels.encoding.pose_sampler import (
    PoseSampler, decode_pose, decode_root_position, encode_root_position, sample_pose,
)


# ── Helpers ───────────────────────────────────────────────────────────

def _two_bone() -> Armature:
    return Armature([
        Bone(0, "root", -1, AxisLimits.free()),
        Bone(1, "bone1", 0, AxisLimits((-1, 0, 0), (1, 0, 0))),
    ])


def _free_chain(n: int = 4) -> Armature:
    bones = [Bone(0, "root")]
    for i in range(1, n):
        bones.append(Bone(i, f"b{i}", i - 1, AxisLimits.free()))
    return Armature(bones)


def _humanoid():
    arm = load_humanoid_armature()
    return arm, build_layout(arm, DEFAULT_OVERRIDES)


def _yaw(angle: float) -> np.ndarray:
    """Rotation about +Y as an [x, y, z, w] quaternion."""
    return np.array([0.0, np.sin(angle / 2), 0.0, np.cos(angle / 2)])


# ── End-to-end ────────────────────────────────────────────────────────

def test_two_bone_example():
    arm = _two_bone()
    layout = build_layout(arm, {})
    pose = PoseSample(root_position=vec3(0, 0, 0), root_rotation=quat_identity(),
                      muscles=[0.42])
    values = sample_pose(pose, layout, arm)

    assert values.shape == (16,)
    assert values[15] == 0.42
    np.testing.assert_array_equal(values[3:6], [0, 0, 0])
    np.testing.assert_array_equal(values[6:10], [0, 0, 0, 1])
    np.testing.assert_array_equal(values[10:15], np.zeros(5))
    np.testing.assert_array_equal(values[0:3], np.zeros(3))


def test_round_trip_free_skeleton():
    arm = _free_chain(5)
    layout = build_layout(arm)
    muscles = np.linspace(-1.0, 1.0, arm.muscle_count)
    values = sample_pose(PoseSample(muscles=muscles), layout, arm)

    for i in range(1, len(arm)):
        base = layout.base_indices[i]
        read = values[base:base + 3]
        np.testing.assert_array_equal(read, muscles[arm.axis_muscles[i]])


def test_values_not_clamped():
    arm = _two_bone()
    layout = build_layout(arm)
    values = sample_pose(PoseSample(muscles=[3.5]), layout, arm)
    assert values[15] == 3.5


def test_locked_axes_read_fill_value():
    arm = Armature([
        Bone(0, "root"),
        Bone(1, "a", 0, AxisLimits((0, -1, 0), (0, 1, 0))),
    ])
    layout = build_layout(arm, {1: 20})
    values = PoseSampler(arm, layout, fill_value=-7.0).sample(PoseSample(muscles=[0.5]))
    assert values[20] == 0.5
    assert np.all(values[15:20] == -7.0)
    assert np.all(values[10:15] == -7.0)


def test_muscle_count_mismatch():
    arm = _two_bone()
    layout = build_layout(arm)
    with pytest.raises(ValueError):
        sample_pose(PoseSample(muscles=[0.1, 0.2]), layout, arm)


def test_layout_armature_mismatch():
    with pytest.raises(ValueError):
        PoseSampler(_free_chain(3), build_layout(_two_bone()))


# ── Root transform ────────────────────────────────────────────────────

class TestRootTransform:

    def test_identity_frame_passes_position_through(self):
        arm = _two_bone()
        layout = build_layout(arm)
        pose = PoseSample(root_position=vec3(1, 2, 3), muscles=[0.0])
        values = sample_pose(pose, layout, arm)
        np.testing.assert_array_equal(values[3:6], [1, 2, 3])

    def test_rotation_order_xyzw(self):
        arm = _two_bone()
        layout = build_layout(arm)
        q = quat_normalize(np.array([0.1, 0.2, 0.3, 0.9]))
        values = sample_pose(PoseSample(root_rotation=q, muscles=[0.0]), layout, arm)
        np.testing.assert_array_almost_equal(values[6:10], q)

    def test_human_scale_and_origin(self):
        frame = RigFrame(position=vec3(10, 0, 0), human_scale=2.0)
        encoded = encode_root_position(vec3(6, 1, 0), frame)
        np.testing.assert_array_almost_equal(encoded, [2, 2, 0])

    def test_root_parent_scale(self):
        frame = RigFrame(root_parent_scale=vec3(1, 2, 0.5))
        encoded = encode_root_position(vec3(1, 1, 1), frame)
        np.testing.assert_array_almost_equal(encoded, [1, 2, 0.5])

    def test_frame_rotation_and_scale(self):
        rot = _yaw(np.pi / 2)
        frame = RigFrame(rotation=rot, scale=vec3(2, 2, 2))
        encoded = encode_root_position(vec3(1, 0, 0), frame)
        # World +X is local +Z after a +90 degree yaw, halved by the object scale
        np.testing.assert_array_almost_equal(encoded, [0, 0, 0.5])

    def test_invariant_to_uniform_rescale(self):
        pos = vec3(0.3, 0.9, -0.2)
        base = encode_root_position(pos, RigFrame(human_scale=1.5))
        scaled = encode_root_position(pos, RigFrame(human_scale=1.5 * 3.0, scale=vec3(3, 3, 3)))
        np.testing.assert_array_almost_equal(base, scaled)

    def test_decode_inverts_encode(self):
        frame = RigFrame(
            position=vec3(1, -2, 3),
            rotation=quat_normalize(np.array([0.3, -0.6, 0.9, 0.4])),
            scale=vec3(1.5, 1.5, 1.5),
            human_scale=0.8,
            root_parent_scale=vec3(1, 2, 1),
        )
        pos = vec3(0.4, 1.1, -0.7)
        back = decode_root_position(encode_root_position(pos, frame), frame)
        np.testing.assert_array_almost_equal(back, pos)

    def test_rotation_relative_to_frame(self):
        arm = _two_bone()
        layout = build_layout(arm)
        rot = _yaw(0.5)
        frame = RigFrame(rotation=rot)
        values = PoseSampler(arm, layout, frame).sample(PoseSample(root_rotation=rot, muscles=[0.0]))
        np.testing.assert_array_almost_equal(values[6:10], [0, 0, 0, 1])

    def test_non_unit_frame_rotation(self):
        arm = _two_bone()
        layout = build_layout(arm)
        frame = RigFrame(rotation=[0, 0, 0, 2])
        pose = PoseSample(root_position=vec3(1, 2, 3), muscles=[0.42])
        sampler = PoseSampler(arm, layout, frame)
        values = sampler.sample(pose)
        np.testing.assert_array_almost_equal(values[3:6], [1, 2, 3])
        np.testing.assert_array_almost_equal(values[6:10], [0, 0, 0, 1])

        back = sampler.decode(values)
        np.testing.assert_array_almost_equal(back.root_rotation, [0, 0, 0, 1])

    def test_scaled_frame_rotation_round_trip(self):
        arm = _two_bone()
        layout = build_layout(arm)
        frame = RigFrame(rotation=3.0 * _yaw(0.7))
        pose = PoseSample(root_position=vec3(0.5, 1, -1), root_rotation=_yaw(0.2), muscles=[0.0])
        sampler = PoseSampler(arm, layout, frame)
        values = sampler.sample(pose)
        np.testing.assert_array_almost_equal(values[6:10], _yaw(-0.5))

        back = sampler.decode(values)
        np.testing.assert_array_almost_equal(back.root_position, pose.root_position)
        np.testing.assert_array_almost_equal(back.root_rotation, pose.root_rotation)


# ── Binding ───────────────────────────────────────────────────────────

class TestBinding:

    def test_all_bound_by_default(self):
        arm, layout = _humanoid()
        sampler = PoseSampler(arm, layout)
        assert all(sampler.is_bound(i) for i in range(len(arm)))

    def test_unbound_bone_skipped(self):
        arm, layout = _humanoid()
        bound = [b.name for b in arm if b.name != "UpperChest"]
        sampler = PoseSampler(arm, layout, bound=bound)
        assert not sampler.is_bound("UpperChest")
        assert sampler.is_bound("Chest")

        values = sampler.sample(PoseSample(muscles=np.ones(arm.muscle_count)))
        upper = arm.index_of("UpperChest")
        assert np.all(values[list(layout.global_indices(upper))] == 0.0)
        chest = arm.index_of("Chest")
        assert np.all(values[list(layout.global_indices(chest))] == 1.0)

    def test_bound_by_index(self):
        arm = _two_bone()
        sampler = PoseSampler(arm, build_layout(arm), bound=[0])
        values = sampler.sample(PoseSample(muscles=[0.9]))
        assert values[15] == 0.0

    def test_root_must_be_bound(self):
        arm = _two_bone()
        with pytest.raises(ValueError):
            PoseSampler(arm, build_layout(arm), bound=[1])

    def test_bound_index_out_of_range(self):
        arm = _two_bone()
        with pytest.raises(ValueError):
            PoseSampler(arm, build_layout(arm), bound=[0, 4])

    def test_is_bound_rejects_out_of_range(self):
        arm = _two_bone()
        sampler = PoseSampler(arm, build_layout(arm))
        with pytest.raises(ValueError):
            sampler.is_bound(-1)
        with pytest.raises(ValueError):
            sampler.is_bound(2)


# ── Shapes ────────────────────────────────────────────────────────────

class TestShapes:

    def test_encoder_visemes_blend_into_channels(self):
        arm, layout = _humanoid()
        layout.add_encoder_viseme_shapes()
        pose = PoseSample(muscles=np.zeros(arm.muscle_count),
                          shape_weights={"v_aa": 0.5, "v_dd": 1.0})
        values = PoseSampler(arm, layout).sample(pose)
        assert values[80] == pytest.approx(0.5 + 0.3)
        assert values[81] == pytest.approx(0.7)
        assert values[82] == 0.0

    def test_missing_shape_weights_read_zero(self):
        arm, layout = _humanoid()
        layout.add_encoder_viseme_shapes()
        values = PoseSampler(arm, layout, fill_value=-1.0).sample(
            PoseSample(muscles=np.zeros(arm.muscle_count)))
        np.testing.assert_array_equal(values[80:83], [0.0, 0.0, 0.0])
        assert values[83] == -1.0


# ── Decoding ──────────────────────────────────────────────────────────

class TestDecode:

    def test_full_round_trip(self):
        arm, layout = _humanoid()
        layout.add_decoder_viseme_shapes(["Face.v_aa", "v_ch", "v_ou"])
        frame = RigFrame(position=vec3(0, 0.1, 0), human_scale=1.2)
        rng = np.random.default_rng(7)
        pose = PoseSample(
            root_position=vec3(0.2, 0.9, -0.3),
            root_rotation=quat_normalize(np.array([0.1, 0.4, -0.2, 0.85])),
            muscles=rng.uniform(-1, 1, arm.muscle_count),
            shape_weights={"Face.v_aa": 0.25, "v_ch": 0.5, "v_ou": 0.75},
        )
        sampler = PoseSampler(arm, layout, frame)
        back = sampler.decode(sampler.sample(pose))

        np.testing.assert_array_almost_equal(back.root_position, pose.root_position)
        np.testing.assert_array_almost_equal(back.root_rotation, pose.root_rotation)
        np.testing.assert_array_equal(back.muscles, pose.muscles)
        assert back.shape_weights == pose.shape_weights

    def test_unbound_muscles_decode_as_nan(self):
        arm = _free_chain(3)
        layout = build_layout(arm)
        values = sample_pose(PoseSample(muscles=np.ones(6)), layout, arm)
        back = decode_pose(values, layout, arm, bound=[0, 1])
        np.testing.assert_array_equal(back.muscles[:3], np.ones(3))
        assert np.all(np.isnan(back.muscles[3:]))

    def test_short_vector_rejected(self):
        arm = _two_bone()
        with pytest.raises(ValueError):
            decode_pose(np.zeros(10), build_layout(arm), arm)
