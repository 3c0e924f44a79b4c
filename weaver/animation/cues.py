from __future__ import annotations

import logging
import os
from typing import Dict, Mapping, Optional

import yaml

from weaver.config.config import config

logger = logging.getLogger(__name__)

POSITION_CHANNELS = ("x", "y", "z")
POSE_CHANNELS = ("head_pitch", "head_yaw", "lean")
CHANNELS = POSITION_CHANNELS + POSE_CHANNELS


def normalize_label(label: Optional[str]) -> str:
    return (label or "").strip().lower()


class CueTable:
    """
    Normalized label -> per-channel offset. Unknown labels, and channels a
    cue does not mention, map to 0.0.
    """

    def __init__(self, cues: Optional[Mapping[str, Mapping[str, float]]] = None):
        self._cues: Dict[str, Dict[str, float]] = {}
        if cues:
            self.update(cues)

    def update(self, cues: Mapping[str, Mapping[str, float]]) -> None:
        for label, offsets in cues.items():
            unknown = set(offsets) - set(CHANNELS)
            if unknown:
                raise ValueError(f"Unknown animation channel(s) for cue {label!r}: {sorted(unknown)}")
            self._cues[normalize_label(label)] = {k: float(v) for k, v in offsets.items()}

    def __contains__(self, label: str) -> bool:
        return normalize_label(label) in self._cues

    def __len__(self) -> int:
        return len(self._cues)

    def offsets(self, label: Optional[str]) -> Dict[str, float]:
        cue = self._cues.get(normalize_label(label), {})
        return {channel: cue.get(channel, 0.0) for channel in CHANNELS}


def load_cue_table(path: Optional[str] = None) -> CueTable:
    path = path or config.get("animation_cues_file")
    table = CueTable()
    if not path or not os.path.exists(path):
        logger.debug(f"No animation cue file at {path}; using an empty cue table")
        return table
    with open(path, "r", encoding="utf-8") as f:
        doc = yaml.safe_load(f) or {}
    table.update(doc.get("animation_cues") or {})
    logger.debug(f"Loaded {len(table)} animation cues from {path}")
    return table
