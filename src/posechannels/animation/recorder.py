"""Recording session: samples one channel vector per frame.

The external driver calls :meth:`PoseRecorder.take_snapshot` once per time
step with the solved pose.  Snapshots are kept as raw channel vectors;
turning them into keyframed clips is left to the consumer.
"""

import logging
from typing import Optional

import numpy as np
from numpy.typing import NDArray

from posechannels.body.armature import Armature
from posechannels.core.events import EventBus, EventType
from posechannels.core.state import PoseSample
from posechannels.encoding.pose_sampler import PoseSampler

logger = logging.getLogger(__name__)


class PoseRecorder:
    """Collects sampled channel vectors over time.

    Validity is explicit: check :meth:`is_valid` before use instead of
    relying on truthiness.
    """

    def __init__(self, sampler: PoseSampler, events: Optional[EventBus] = None):
        self._sampler: Optional[PoseSampler] = sampler
        self._events = events
        self._recording = False
        self._times: list[float] = []
        self._frames: list[NDArray[np.float64]] = []
        self._clock = 0.0

    # ── State ─────────────────────────────────────────────────────

    def is_valid(self) -> bool:
        """True until :meth:`dispose` is called."""
        return self._sampler is not None

    @property
    def is_recording(self) -> bool:
        return self._recording

    @property
    def sampler(self) -> PoseSampler:
        if self._sampler is None:
            raise RuntimeError("Recorder has been disposed")
        return self._sampler

    @property
    def frame_count(self) -> int:
        return len(self._frames)

    @property
    def duration(self) -> float:
        return self._times[-1] if self._times else 0.0

    @property
    def times(self) -> NDArray[np.float64]:
        return np.array(self._times, dtype=np.float64)

    @property
    def frames(self) -> NDArray[np.float64]:
        """``(frame_count, channel_count)`` array of recorded vectors."""
        if not self._frames:
            return np.zeros((0, self.sampler.channel_count), dtype=np.float64)
        return np.vstack(self._frames)

    # ── Control ───────────────────────────────────────────────────

    def start(self) -> None:
        sampler = self.sampler
        self._recording = True
        logger.info("Recording started (%d channels)", sampler.channel_count)
        self._publish(EventType.RECORDING_STARTED, channel_count=sampler.channel_count)

    def take_snapshot(self, pose: PoseSample, delta_time: float) -> NDArray[np.float64]:
        """Sample *pose* and append it, *delta_time* seconds after the previous frame.

        The first snapshot is stamped at t=0 regardless of *delta_time*.
        """
        if not self._recording:
            raise RuntimeError("take_snapshot called while not recording")
        if delta_time < 0:
            raise ValueError(f"delta_time must be non-negative, got {delta_time}")
        values = self.sampler.sample(pose)
        if self._frames:
            self._clock += delta_time
        self._times.append(self._clock)
        self._frames.append(values)
        self._publish(EventType.FRAME_SAMPLED,
                      frame=len(self._frames) - 1, time=self._clock, values=values)
        return values

    def stop(self) -> None:
        if not self._recording:
            return
        self._recording = False
        logger.info("Recording stopped: %d frames, %.3fs", self.frame_count, self.duration)
        self._publish(EventType.RECORDING_STOPPED,
                      frame_count=self.frame_count, duration=self.duration)

    def reset(self) -> None:
        """Drop all recorded frames; the recording state is unchanged."""
        self._times.clear()
        self._frames.clear()
        self._clock = 0.0
        self._publish(EventType.RECORDING_RESET)

    def dispose(self) -> None:
        self.stop()
        self.reset()
        self._sampler = None

    def _publish(self, event_type: EventType, **data) -> None:
        if self._events is not None:
            self._events.publish(event_type, **data)

    # ── Curves ────────────────────────────────────────────────────

    def channel_curve(self, index: int) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
        """(times, values) of one channel across all recorded frames."""
        return self.times, self.frames[:, index]

    def named_curves(
        self, armature: Optional[Armature] = None,
    ) -> dict[str, tuple[NDArray[np.float64], NDArray[np.float64]]]:
        """Curves for every named channel, keyed by channel name."""
        sampler = self.sampler
        names = sampler.layout.channel_names(armature or sampler.armature)
        times, frames = self.times, self.frames
        return {
            name: (times, frames[:, idx])
            for idx, name in enumerate(names)
            if name
        }
