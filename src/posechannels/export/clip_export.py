"""Recorded clip serialization to JSON.

A recorded clip stores the channel layout next to the raw per-frame
channel vectors so a reader can decode it without the source armature.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Union

import numpy as np
from numpy.typing import NDArray

from posechannels.animation.recorder import PoseRecorder
from posechannels.constants import DEFAULT_RECORD_FPS
from posechannels.core.config_loader import load_json, save_json

logger = logging.getLogger(__name__)


@dataclass
class RecordedClip:
    """A recording read back from disk."""
    name: str = ""
    fps: float = DEFAULT_RECORD_FPS
    channel_names: list[str] = field(default_factory=list)
    layout: dict = field(default_factory=dict)
    times: NDArray[np.float64] = field(default_factory=lambda: np.zeros(0))
    frames: NDArray[np.float64] = field(default_factory=lambda: np.zeros((0, 0)))

    @property
    def duration(self) -> float:
        return float(self.times[-1]) if len(self.times) else 0.0


def recording_to_dict(recorder: PoseRecorder, name: str = "",
                      fps: float = DEFAULT_RECORD_FPS) -> dict:
    """Serialize a recorder's frames to a JSON-compatible dict."""
    sampler = recorder.sampler
    return {
        "name": name,
        "fps": fps,
        "channel_names": sampler.layout.channel_names(sampler.armature),
        "layout": sampler.layout.to_dict(),
        "times": recorder.times.tolist(),
        "frames": recorder.frames.tolist(),
    }


def load_recording_from_dict(d: dict) -> RecordedClip:
    """Deserialize a RecordedClip from a JSON-compatible dict."""
    names = d.get("channel_names", [])
    frames = np.asarray(d.get("frames", []), dtype=np.float64)
    if frames.size == 0:
        frames = frames.reshape(0, len(names))
    times = np.asarray(d.get("times", []), dtype=np.float64)
    if len(times) != len(frames):
        raise ValueError(
            f"Clip '{d.get('name', '')}': {len(times)} timestamps for {len(frames)} frames")
    return RecordedClip(
        name=d.get("name", ""),
        fps=d.get("fps", DEFAULT_RECORD_FPS),
        channel_names=list(names),
        layout=d.get("layout", {}),
        times=times,
        frames=frames,
    )


def save_recording(path: Union[str, Path], recorder: PoseRecorder, name: str = "",
                   fps: float = DEFAULT_RECORD_FPS) -> None:
    save_json(Path(path), recording_to_dict(recorder, name=name, fps=fps))
    logger.info("Saved recording to %s (%d frames)", path, recorder.frame_count)


def load_recording(path: Union[str, Path]) -> RecordedClip:
    clip = load_recording_from_dict(load_json(Path(path)))
    logger.info("Loaded recording: %s (%d frames)", clip.name, len(clip.frames))
    return clip
