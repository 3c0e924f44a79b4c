from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Dict, List, Optional, Union

import yaml
from pydantic import ValidationError

from weaver.config.config import config
from weaver.scene.models import SceneAnalysis, SceneState
from weaver.scene.store import SceneGraphStore
from weaver.timeline.models import SceneData


class SnapshotError(ValueError):
    pass


@dataclass
class Preset:
    id: str
    name: str
    data: SceneData


def load_presets(path: Optional[str] = None) -> List[Preset]:
    """Read the bundled (or given) YAML preset file, keeping file order."""
    path = path or config["presets_file"]
    with open(path, "r", encoding="utf-8") as f:
        doc = yaml.safe_load(f) or {}
    return [
        Preset(id=str(p["id"]), name=str(p.get("name", p["id"])), data=SceneData.from_dict(p["data"]))
        for p in doc.get("presets") or []
    ]


def presets_by_id(path: Optional[str] = None) -> Dict[str, Preset]:
    return {p.id: p for p in load_presets(path)}


def get_preset(preset_id: str, path: Optional[str] = None) -> Preset:
    presets = presets_by_id(path)
    if preset_id not in presets:
        raise KeyError(f"Unknown preset: {preset_id}")
    return presets[preset_id]


def dump_snapshot(snapshot: Union[SceneAnalysis, SceneState]) -> bytes:
    """
    Serialize a layout snapshot to the JSON document the analysis service
    produces (camelCase keys). A SceneState is converted back through the store
    so identities do not leak into the saved document.
    """
    if isinstance(snapshot, SceneState):
        snapshot = SceneGraphStore().to_analysis(snapshot)
    return json.dumps(snapshot.model_dump(by_alias=True), ensure_ascii=True, sort_keys=True).encode("utf-8")


def load_snapshot(blob: bytes) -> SceneAnalysis:
    try:
        return SceneAnalysis.model_validate_json(blob)
    except ValidationError as e:
        raise SnapshotError(f"Invalid scene snapshot: {e}") from e
