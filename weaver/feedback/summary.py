from __future__ import annotations

import math
from typing import Union

from weaver.scene.models import ACTOR, CAMERA, SceneAnalysis, SceneState


def _whole(value: float) -> str:
    return str(int(math.floor(value + 0.5)))


def scene_summary(scene: Union[SceneState, SceneAnalysis]) -> str:
    """Short text description of the layout: environment, mood, actor and camera positions."""
    if isinstance(scene, SceneAnalysis):
        environment, mood = scene.environment_description, scene.overall_mood
        actors = [(a.name, a.position.x, a.position.y) for a in scene.actors]
        camera = (scene.camera.position.x, scene.camera.position.y)
    else:
        environment, mood = scene.environment_description, scene.overall_mood
        actors = [(e.name, e.position.x, e.position.y) for e in scene.by_kind(ACTOR)]
        cams = scene.by_kind(CAMERA)
        camera = (cams[0].position.x, cams[0].position.y) if cams else (50.0, 50.0)

    actor_text = ", ".join(f"{name} at ({_whole(x)}, {_whole(y)})" for name, x, y in actors)
    return "\n".join(
        [
            f"- Environment: {environment}",
            f"- Mood: {mood}",
            f"- Actors: {actor_text}",
            f"- Camera: at ({_whole(camera[0])}, {_whole(camera[1])})",
        ]
    )


def feedback_prompt(summary_text: str, changed_entity_name: str) -> str:
    return (
        "You are an expert AI Film Director. A user is interactively blocking a scene.\n"
        "Current scene summary:\n"
        f"{summary_text}\n\n"
        f'The user just moved the "{changed_entity_name}".\n\n'
        "Based on its new position relative to other elements, provide a concise cinematic analysis "
        "of this specific change.\n"
        "Be brief and insightful. Adhere to the JSON schema."
    )
