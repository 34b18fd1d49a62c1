"""Runtime settings for the realtime walkthrough service, read from the environment."""

import os
from dataclasses import dataclass
from typing import Optional


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be a number, got {raw!r}") from exc


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class RealtimeSettings:
    """Settings consumed by the orchestrator, transport and agent bridge."""

    openai_api_key: Optional[str] = None
    realtime_model: str = "gpt-realtime"
    transcribe_model: str = "gpt-4o-transcribe"
    voice: str = "marin"
    agent_base_url: Optional[str] = None
    agent_token: Optional[str] = None
    agent_model: str = "openclaw"
    video_frame_interval: float = 1.0
    video_jpeg_quality: int = 50
    mute_mic_while_model_speaking: bool = False
    state_poll_interval: float = 0.1

    @property
    def is_configured(self) -> bool:
        return bool(self.openai_api_key and self.openai_api_key.strip())

    @classmethod
    def from_env(cls) -> "RealtimeSettings":
        return cls(
            openai_api_key=os.getenv("OPENAI_API_KEY"),
            realtime_model=os.getenv("OPENAI_REALTIME_MODEL", "gpt-realtime"),
            transcribe_model=os.getenv("OPENAI_TRANSCRIBE_MODEL", "gpt-4o-transcribe"),
            voice=os.getenv("OPENAI_VOICE", "marin"),
            agent_base_url=os.getenv("AGENT_BASE_URL") or None,
            agent_token=os.getenv("AGENT_TOKEN") or None,
            agent_model=os.getenv("AGENT_MODEL", "openclaw"),
            video_frame_interval=_env_float("VIDEO_FRAME_INTERVAL", 1.0),
            video_jpeg_quality=int(_env_float("VIDEO_JPEG_QUALITY", 50)),
            mute_mic_while_model_speaking=_env_bool("MUTE_MIC_WHILE_MODEL_SPEAKING"),
            state_poll_interval=_env_float("STATE_POLL_INTERVAL", 0.1),
        )
