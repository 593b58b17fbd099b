"""Channel encoding -- layout building and per-frame pose sampling."""

from posechannels.encoding.frame_layout import ChannelLayout, LayoutError, build_layout
from posechannels.encoding.pose_sampler import PoseSampler, decode_pose, sample_pose

__all__ = [
    "ChannelLayout",
    "LayoutError",
    "PoseSampler",
    "build_layout",
    "decode_pose",
    "sample_pose",
]
