"""
Scene graph for the 2D overlay and 3D perspective views.

- SceneGraphStore owns the authoritative layout and derives per-tick states
- projection turns a SceneState into overlay markers / 3D nodes
- presets loads timeline presets and (de)serializes layout snapshots
"""

from .models import DynamicFeedback, Entity, Position, SceneAnalysis, SceneState
from .store import EditEvent, SceneGraphStore

__all__ = [
    "DynamicFeedback",
    "EditEvent",
    "Entity",
    "Position",
    "SceneAnalysis",
    "SceneGraphStore",
    "SceneState",
]
