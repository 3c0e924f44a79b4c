"""
Eased pose blending for the 3D view.

Logical labels (an actor's emotion, the camera's move) change in steps; the
blender turns each step into a short eased transition per channel. Only the
rendered values move; the logical state is never written back.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional

from weaver.animation.cues import CHANNELS, POSITION_CHANNELS, CueTable, load_cue_table, normalize_label
from weaver.animation.easing import clamp, ease_in_out_cubic, lerp
from weaver.config.config import config
from weaver.scene.models import Position

logger = logging.getLogger(__name__)


@dataclass
class ChannelState:
    start_value: float
    target_value: float
    rendered: float


@dataclass
class PoseAnimationState:
    label: str
    start_time: float
    duration: float
    spatial: Position
    channels: Dict[str, ChannelState] = field(default_factory=dict)

    def progress(self, now: float) -> float:
        if self.duration <= 0 or now >= self.start_time + self.duration:
            return 1.0
        return clamp((now - self.start_time) / self.duration)

    def rendered(self) -> Dict[str, float]:
        return {name: ch.rendered for name, ch in self.channels.items()}


class PoseBlender:
    def __init__(self, duration: Optional[float] = None, cues: Optional[CueTable] = None):
        self.duration = float(config["blend_duration"] if duration is None else duration)
        self.cues = cues if cues is not None else load_cue_table()
        self._states: Dict[str, PoseAnimationState] = {}

    def __contains__(self, identity: str) -> bool:
        return identity in self._states

    def get(self, identity: str) -> Optional[PoseAnimationState]:
        return self._states.get(identity)

    def _targets(self, label: str, spatial: Position) -> Dict[str, float]:
        offsets = self.cues.offsets(label)
        base = {"x": spatial.x, "y": spatial.y, "z": spatial.z}
        return {name: base.get(name, 0.0) + offsets[name] for name in CHANNELS}

    def _evaluate(self, state: PoseAnimationState, now: float) -> Dict[str, float]:
        p = state.progress(now)
        if p >= 1.0:
            for ch in state.channels.values():
                ch.rendered = ch.target_value
        else:
            eased = ease_in_out_cubic(p)
            for ch in state.channels.values():
                ch.rendered = lerp(ch.start_value, ch.target_value, eased)
        return state.rendered()

    def _refresh_position_targets(self, state: PoseAnimationState) -> None:
        targets = self._targets(state.label, state.spatial)
        for name in POSITION_CHANNELS:
            state.channels[name].target_value = targets[name]

    def update(self, identity: str, label: Optional[str], spatial_target: Position, now: float) -> Dict[str, float]:
        """Observe the entity's logical label and spatial target at ``now``; return rendered channels."""
        label = normalize_label(label)
        state = self._states.get(identity)

        if state is None:
            targets = self._targets(label, spatial_target)
            state = PoseAnimationState(
                label=label,
                start_time=now,
                duration=self.duration,
                spatial=spatial_target,
                channels={name: ChannelState(v, v, v) for name, v in targets.items()},
            )
            self._states[identity] = state
            return state.rendered()

        if label != state.label:
            current = self._evaluate(state, now)
            targets = self._targets(label, spatial_target)
            logger.debug(f"{identity}: blending {state.label!r} -> {label!r}")
            state.label = label
            state.spatial = spatial_target
            state.start_time = now
            state.duration = self.duration
            for name, ch in state.channels.items():
                ch.start_value = current[name]
                ch.target_value = targets[name]
        elif spatial_target != state.spatial:
            state.spatial = spatial_target
            self._refresh_position_targets(state)

        return self._evaluate(state, now)

    def retarget(self, identity: str, position: Position) -> bool:
        """Move the spatial target after an edit; timing and label stay as they are."""
        state = self._states.get(identity)
        if state is None:
            return False
        state.spatial = position
        self._refresh_position_targets(state)
        return True

    def forget(self, identity: str) -> None:
        self._states.pop(identity, None)

    def reset(self) -> None:
        self._states.clear()
