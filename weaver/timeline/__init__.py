"""
Keyframe tracks and the sampling primitives built on them.

Everything here is pure: tracks are immutable inputs set at scene load and
sampled at whatever rate the playback clock reports.
"""

from .curves import ColorStop, CurvePoint, CurveRenderer, NoisyCurve
from .models import BlockingKeyframe, CameraKeyframe, CameraTrack, Character, EmotionKeyframe, Keyframe, SceneData
from .sampler import Segment, average_intensity, current_label, find_segment, interpolate, sample

__all__ = [
    "BlockingKeyframe",
    "CameraKeyframe",
    "CameraTrack",
    "Character",
    "ColorStop",
    "CurvePoint",
    "CurveRenderer",
    "EmotionKeyframe",
    "Keyframe",
    "NoisyCurve",
    "SceneData",
    "Segment",
    "average_intensity",
    "current_label",
    "find_segment",
    "interpolate",
    "sample",
]
