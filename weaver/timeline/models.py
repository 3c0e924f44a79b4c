from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class Keyframe:
    time: float
    value: float
    label: Optional[str] = None


@dataclass(frozen=True)
class BlockingKeyframe:
    time: float
    x: float
    y: float


@dataclass(frozen=True)
class EmotionKeyframe:
    time: float
    intensity: float
    label: str = ""


@dataclass(frozen=True)
class CameraKeyframe:
    time: float
    x: float
    y: float
    complexity: float
    label: str = ""


@dataclass
class Character:
    id: str
    name: str
    color: str = ""
    path_color: str = ""
    blocking: List[BlockingKeyframe] = field(default_factory=list)
    emotion: List[EmotionKeyframe] = field(default_factory=list)


@dataclass
class CameraTrack:
    movement: List[CameraKeyframe] = field(default_factory=list)
    path_color: str = ""


@dataclass
class SceneData:
    video_url: str
    duration: float
    characters: List[Character] = field(default_factory=list)
    camera: CameraTrack = field(default_factory=CameraTrack)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SceneData":
        """
        Build from the camelCase document used by presets (videoUrl, pathColor, ...).
        Keyframe lists are taken in the order given.
        """
        characters = [
            Character(
                id=str(c["id"]),
                name=str(c.get("name", c["id"])),
                color=c.get("color", ""),
                path_color=c.get("pathColor", ""),
                blocking=[BlockingKeyframe(float(k["time"]), float(k["x"]), float(k["y"])) for k in c.get("blocking") or []],
                emotion=[
                    EmotionKeyframe(float(k["time"]), float(k["intensity"]), str(k.get("label", "")))
                    for k in c.get("emotion") or []
                ],
            )
            for c in data.get("characters") or []
        ]
        camera = data.get("camera") or {}
        track = CameraTrack(
            movement=[
                CameraKeyframe(
                    float(k["time"]),
                    float(k["x"]),
                    float(k["y"]),
                    float(k.get("complexity", 0.0)),
                    str(k.get("label", "")),
                )
                for k in camera.get("movement") or []
            ],
            path_color=camera.get("pathColor", ""),
        )
        return cls(
            video_url=data.get("videoUrl", ""),
            duration=float(data["duration"]),
            characters=characters,
            camera=track,
        )
