"""Viseme → blend-shape channel mapping.

Each canonical viseme contributes to three broad mouth-shape channels.
Encoding emits synthesized ``v_<viseme>`` shape names for every non-zero
contribution; decoding looks up, for every primary viseme of a channel, the
best matching blend shape among the names available on a target mesh.
"""

import logging
import re
from typing import Iterable, NamedTuple

from posechannels.constants import VISEME_BASE_INDEX, VISEME_SHAPE_PREFIX

logger = logging.getLogger(__name__)


class ShapeIndex(NamedTuple):
    """One blend shape driving (or driven by) one output channel."""
    shape: str
    index: int
    weight: float


# ── Viseme table ──────────────────────────────────────────────────────

# viseme → weights for the three mouth channels (open, wide, round)
VISEME_TABLE: tuple[tuple[str, tuple[float, float, float]], ...] = (
    ("aa", (1.0, 0.0, 0.0)),
    ("ch", (0.0, 1.0, 0.0)),
    ("dd", (0.3, 0.7, 0.0)),
    ("e",  (0.0, 0.7, 0.3)),
    ("ff", (0.2, 0.4, 0.0)),
    ("ih", (0.5, 0.2, 0.0)),
    ("kk", (0.7, 0.4, 0.0)),
    ("nn", (0.2, 0.7, 0.0)),
    ("oh", (0.2, 0.0, 0.8)),
    ("ou", (0.0, 0.0, 1.0)),
    ("pp", (0.0, 0.0, 0.0)),
    ("rr", (0.0, 0.5, 0.3)),
    ("ss", (0.0, 0.8, 0.0)),
    ("th", (0.4, 0.0, 0.15)),
)

VISEME_NAMES: tuple[str, ...] = tuple(name for name, _ in VISEME_TABLE)

# Name search strategies, highest priority first.  Each template is
# formatted with the escaped viseme name and matched case-insensitively
# against the end of every available shape name.
VISEME_NAME_PATTERNS: tuple[str, ...] = (
    r"v_{viseme}$",
    r"{viseme}$",
)


def viseme_shape_name(viseme: str) -> str:
    """Synthesized blend-shape name for a viseme."""
    return f"{VISEME_SHAPE_PREFIX}{viseme}"


# ── Encode / decode ───────────────────────────────────────────────────

def encode_table(base_index: int = VISEME_BASE_INDEX) -> list[ShapeIndex]:
    """Shape indices for every non-zero (viseme, channel) weight."""
    result = []
    for viseme, weights in VISEME_TABLE:
        for i, w in enumerate(weights):
            if w != 0:
                result.append(ShapeIndex(viseme_shape_name(viseme), base_index + i, w))
    return result


def decode_table(shape_names: Iterable[str],
                 base_index: int = VISEME_BASE_INDEX) -> list[ShapeIndex]:
    """Shape indices for every primary viseme (weight exactly 1) of a channel.

    Names are resolved against *shape_names* with
    :func:`search_viseme_name`; unresolved visemes keep the synthesized name.
    """
    names = list(shape_names)
    result = []
    for viseme, weights in VISEME_TABLE:
        for i, w in enumerate(weights):
            if w == 1:
                shape = search_viseme_name(names, viseme)
                result.append(ShapeIndex(shape, base_index + i, w))
    return result


def search_viseme_name(shape_names: Iterable[str], viseme: str) -> str:
    """Find the blend shape that best matches *viseme*.

    Patterns in :data:`VISEME_NAME_PATTERNS` are tried in order; within a
    pattern the first name in iteration order wins.  Falls back to the
    synthesized ``v_<viseme>`` name.
    """
    names = list(shape_names)
    for template in VISEME_NAME_PATTERNS:
        pattern = re.compile(template.format(viseme=re.escape(viseme)), re.IGNORECASE)
        for name in names:
            if pattern.search(name):
                return name
    fallback = viseme_shape_name(viseme)
    logger.debug("No blend shape matches viseme '%s'; using '%s'", viseme, fallback)
    return fallback
