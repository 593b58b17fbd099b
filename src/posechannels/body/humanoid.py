"""Default humanoid armature preset.

Bones are ordered roughly by hierarchy mass (torso, legs, arms, toes/eyes/jaw,
then left and right fingers) so that the most significant joints take the
lowest channel slots.  Limits and muscle names follow the usual humanoid
muscle conventions, in degrees.
"""

import logging
from typing import Optional

from posechannels.body.armature import Armature
from posechannels.core.config_loader import load_config

logger = logging.getLogger(__name__)

HUMANOID_CONFIG = "humanoid.json"

# Index of the first finger bone (LeftThumbProximal) in the humanoid order.
FIRST_FINGER_BONE = 25

# Pin the fingers to channel 90 so the conventional viseme range stays free.
DEFAULT_OVERRIDES: dict[int, int] = {
    FIRST_FINGER_BONE: 90,
}


def load_humanoid_armature(config_name: Optional[str] = None) -> Armature:
    """Load the humanoid bone table from assets/config/ and build an Armature."""
    data = load_config(config_name or HUMANOID_CONFIG)
    armature = Armature.from_dict(data)
    logger.debug("Loaded humanoid armature: %d bones, %d muscles",
                 len(armature), armature.muscle_count)
    return armature
