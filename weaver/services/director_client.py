"""
Model-backed collaborators for the director views.

Both calls go through an OpenAI-compatible chat endpoint (Gemini by default)
and ask for structured output on the pydantic contracts in
weaver.scene.models, so responses arrive validated.
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional, Sequence

from langchain_core.messages import HumanMessage
from langchain_openai import ChatOpenAI

from weaver.config.config import config as default_config
from weaver.feedback.summary import feedback_prompt
from weaver.scene.models import DynamicFeedback, SceneAnalysis
from weaver.services.base import ServiceResponse, setup_logger

logger = setup_logger(__name__)

LAYOUT_PROMPT = (
    "Analyze this sequence of frames from a movie. Describe the 3D layout from a top-down perspective "
    "(100x100 grid), character emotions, their interactions, the overall environment, and mood. Be very "
    "descriptive and nuanced in your analysis, especially for the environment (time of day, weather, location) "
    "and mood (specific emotional tones like 'melancholy' or 'suspenseful'). The frames are sequential. "
    "Provide a single, consolidated JSON response adhering to the schema."
)


def frame_timestamps(center: float, count: int, offset: float, duration: float) -> List[float]:
    """``count`` capture times spaced ``offset`` apart around ``center``, clamped to the clip."""
    half = count // 2
    return [max(0.0, min(duration, center + (i - half) * offset)) for i in range(count)]


def _parse_extra(extra: Optional[str | Dict[str, Any]]) -> Dict[str, Any]:
    if isinstance(extra, dict):
        return dict(extra)
    if isinstance(extra, str) and extra.strip():
        try:
            return json.loads(extra)
        except json.JSONDecodeError:
            logger.warning(f"Ignoring malformed director_model_extra_params: {extra!r}")
            return {}
    return {}


def _create_chat_model(
    provider: str,
    model_id: str,
    api_key: Optional[str],
    base_url: Optional[str],
    extra_params: Optional[str | Dict[str, Any]] = None,
) -> ChatOpenAI:
    p = (provider or "").lower()
    if p not in {"openai", "openai_compatible", "gemini", "deepseek", "vllm", "ollama"}:
        logger.warning(f"Provider '{provider}' not explicitly supported; using OpenAI-compatible ChatOpenAI.")
    if not api_key:
        raise RuntimeError("DIRECTOR_MODEL_API_KEY is not set")

    extra = _parse_extra(extra_params)
    # Pull known top-level args to avoid burying them in model_kwargs.
    temperature = extra.pop("temperature", None)
    top_p = extra.pop("top_p", None)
    max_completion_tokens = extra.pop("max_completion_tokens", None)

    return ChatOpenAI(
        model=model_id,
        api_key=api_key,
        base_url=base_url or None,
        temperature=temperature,
        top_p=top_p,
        max_completion_tokens=max_completion_tokens,
        model_kwargs=extra or {},
    )


def _coerce(model_cls, result: Any):
    if isinstance(result, model_cls):
        return result
    return model_cls.model_validate(result)


class DirectorClient:
    def __init__(self, chat_model: Optional[Any] = None, cfg: Optional[Dict[str, Any]] = None):
        cfg = cfg or default_config
        self.frame_count = int(cfg.get("analysis_frame_count", 3))
        self.frame_offset = float(cfg.get("analysis_frame_offset", 0.5))
        if chat_model is None:
            chat_model = _create_chat_model(
                provider=cfg.get("director_model_provider", ""),
                model_id=cfg.get("director_model_id", ""),
                api_key=cfg.get("director_model_api_key", ""),
                base_url=cfg.get("director_model_base_url", ""),
                extra_params=cfg.get("director_model_extra_params", ""),
            )
        self.chat_model = chat_model

    def capture_times(self, center: float, duration: float) -> List[float]:
        return frame_timestamps(center, self.frame_count, self.frame_offset, duration)

    async def analyze_scene_layout(self, frames: Sequence[str]) -> SceneAnalysis:
        """``frames`` are base64 JPEGs in playback order."""
        if not frames:
            raise ValueError("at least one frame is required")
        content: List[Dict[str, Any]] = [{"type": "text", "text": LAYOUT_PROMPT}]
        content.extend(
            {"type": "image_url", "image_url": {"url": f"data:image/jpeg;base64,{frame}"}} for frame in frames
        )
        structured = self.chat_model.with_structured_output(SceneAnalysis, method="function_calling")
        result = await structured.ainvoke([HumanMessage(content=content)])
        analysis = _coerce(SceneAnalysis, result)
        logger.info(
            f"Scene analysis: {len(analysis.actors)} actors, {len(analysis.lights)} lights, {len(analysis.props)} props"
        )
        return analysis

    async def get_dynamic_feedback(self, scene_summary_text: str, changed_entity_name: str) -> DynamicFeedback:
        structured = self.chat_model.with_structured_output(DynamicFeedback, method="function_calling")
        result = await structured.ainvoke([HumanMessage(content=feedback_prompt(scene_summary_text, changed_entity_name))])
        return _coerce(DynamicFeedback, result)


async def analyze_layout(frames: Sequence[str], client: Optional[DirectorClient] = None) -> ServiceResponse:
    """Service wrapper: never raises, reports failures in the response."""
    try:
        client = client or DirectorClient()
        analysis = await client.analyze_scene_layout(frames)
        return ServiceResponse(
            success=True,
            message="Scene layout analyzed successfully.",
            content=analysis.model_dump(by_alias=True),
        )
    except Exception as e:
        logger.error(f"Scene analysis failed: {e}")
        return ServiceResponse(
            success=False,
            message="Failed to analyze the scene. Check your API key configuration or try again.",
        )
