"""
Rendered-pose animation.

- easing: clamp / lerp / cubic ease-in-out
- cues: label -> channel offset table (extendable from YAML)
- pose_blender: per-entity eased transitions between logical labels
"""

from .cues import CHANNELS, CueTable, load_cue_table
from .pose_blender import PoseAnimationState, PoseBlender

__all__ = ["CHANNELS", "CueTable", "PoseAnimationState", "PoseBlender", "load_cue_table"]
