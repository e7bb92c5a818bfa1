"""Runtime configuration for the FlowSketch editor."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .constants import AUTOSAVE_DELAY_MS

logger = logging.getLogger(__name__)

ENV_PREFIX = "FLOWSKETCH_"


@dataclass(frozen=True)
class EditorConfig:
    """Endpoints, credentials and flags read from the environment.

    Every remote collaborator is optional; an editor built from an empty
    environment works purely in memory.
    """

    ai_endpoint: Optional[str] = None
    ai_api_key: Optional[str] = None
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    access_token: Optional[str] = None
    user_id: Optional[str] = None
    autosave_ms: int = AUTOSAVE_DELAY_MS
    diagram_path: Optional[str] = None
    smoke: bool = False

    @property
    def has_generation(self) -> bool:
        return bool(self.ai_endpoint and self.ai_api_key)

    @property
    def has_supabase(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "EditorConfig":
        env = os.environ if environ is None else environ

        def get(name: str) -> Optional[str]:
            value = env.get(ENV_PREFIX + name, "").strip()
            return value or None

        autosave_ms = AUTOSAVE_DELAY_MS
        raw_autosave = get("AUTOSAVE_MS")
        if raw_autosave is not None:
            try:
                autosave_ms = max(0, int(raw_autosave))
            except ValueError:
                logger.warning("Ignoring invalid %sAUTOSAVE_MS=%r", ENV_PREFIX, raw_autosave)

        return cls(
            ai_endpoint=get("AI_ENDPOINT"),
            ai_api_key=get("AI_API_KEY"),
            supabase_url=get("SUPABASE_URL"),
            supabase_key=get("SUPABASE_KEY"),
            access_token=get("ACCESS_TOKEN"),
            user_id=get("USER_ID"),
            autosave_ms=autosave_ms,
            diagram_path=get("DIAGRAM_PATH"),
            smoke=get("SMOKE") == "1",
        )
