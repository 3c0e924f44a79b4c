from __future__ import annotations

import copy
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


# --- external analysis contract (0-100 grid, camelCase on the wire) ---

class Vector3(BaseModel):
    x: float
    y: float
    z: float = 0.0


class Quaternion(BaseModel):
    x: float
    y: float
    z: float
    w: float


class ActorAnalysis(BaseModel):
    name: str
    position: Vector3
    emotion: str = ""
    interaction: Optional[str] = None


class CameraAnalysis(BaseModel):
    position: Vector3
    orientation: Optional[Vector3] = None
    zoom: Optional[float] = None


class LightAnalysis(BaseModel):
    type: str
    position: Vector3
    intensity: float = Field(ge=0.0, le=1.0)


class PropAnalysis(BaseModel):
    name: str
    position: Vector3


class SceneAnalysis(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    actors: List[ActorAnalysis] = Field(default_factory=list)
    camera: CameraAnalysis
    lights: List[LightAnalysis] = Field(default_factory=list)
    props: List[PropAnalysis] = Field(default_factory=list)
    environment_description: str = Field("", alias="environmentDescription")
    overall_mood: str = Field("", alias="overallMood")


class DynamicFeedback(BaseModel):
    impact: str
    suggestion: str


# --- engine-side scene graph ---

ACTOR = "actor"
CAMERA = "camera"
LIGHT = "light"
PROP = "prop"
ENTITY_KINDS = (ACTOR, CAMERA, LIGHT, PROP)

AUTHORITATIVE = "authoritative"
DERIVED = "derived"


def character_identity(char_id: str) -> str:
    """Identity of a timeline character in derived states; never equal to ``camera``."""
    return f"{ACTOR}:{char_id}"


@dataclass(frozen=True)
class Position:
    x: float
    y: float
    z: float = 0.0

    @classmethod
    def from_vector(cls, vec: Vector3) -> "Position":
        return cls(float(vec.x), float(vec.y), float(vec.z))

    def to_vector(self) -> Vector3:
        return Vector3(x=self.x, y=self.y, z=self.z)


@dataclass
class Entity:
    identity: str
    kind: str
    name: str
    position: Position
    attributes: Dict[str, Any] = field(default_factory=dict)


@dataclass
class SceneState:
    entities: List[Entity] = field(default_factory=list)
    environment_description: str = ""
    overall_mood: str = ""
    origin: str = AUTHORITATIVE
    time: Optional[float] = None

    def find(self, identity: str) -> Optional[Entity]:
        # First match wins; identities are unique in a well-formed state.
        for entity in self.entities:
            if entity.identity == identity:
                return entity
        return None

    def by_kind(self, kind: str) -> List[Entity]:
        return [e for e in self.entities if e.kind == kind]

    def identities(self) -> List[str]:
        return [e.identity for e in self.entities]

    def snapshot(self) -> "SceneState":
        """Independent copy; later edits to this state do not show through."""
        return replace(
            self,
            entities=[replace(e, attributes=copy.deepcopy(e.attributes)) for e in self.entities],
        )
