"""
Configuration for the conversation API and its speech collaborators.

Loads from environment variables with sensible defaults. Local env files are
read first but never override variables already exported by the process.
"""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

_ROOT = Path(__file__).parent.parent
for _name in (".env_local", ".env.local", ".env"):
    _path = _ROOT / _name
    if _path.exists():
        load_dotenv(_path, override=False)

DEFAULT_MAX_UPLOAD_BYTES = 10 * 1024 * 1024


def _parse_int_env(key: str, default: int) -> int:
    """
    Parse integer environment variable, stripping comments and whitespace.

    Handles cases like:
    - "10485760  # 10MB" -> 10485760
    - "3000" -> 3000
    - None -> default
    """
    value = os.environ.get(key)
    if not value:
        return default

    if "#" in value:
        value = value.split("#")[0]
    value = value.strip()

    if not value:
        return default

    try:
        return int(value)
    except ValueError:
        return default


def _parse_list_env(key: str, default: str) -> List[str]:
    raw = os.environ.get(key, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass
class ApiConfig:
    """Conversation API configuration."""

    # OpenAI (STT + LLM + TTS); absence is detected when a provider is used
    openai_api_key: Optional[str] = None
    transcription_model: str = "whisper-1"
    chat_model: str = "gpt-3.5-turbo"
    tts_model: str = "tts-1"
    tts_voice: str = "nova"

    # Uploads
    upload_dir: str = "uploads"
    max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES

    # Server
    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"
    cors_origins: List[str] = field(default_factory=lambda: ["*"])

    # Seed instruction scenario (speech_pipeline/scenarios/<name>.yaml)
    scenario: str = "default"

    @classmethod
    def from_env(cls) -> "ApiConfig":
        """Load configuration from environment variables."""
        return cls(
            openai_api_key=os.environ.get("OPENAI_API_KEY") or None,
            transcription_model=os.environ.get("OPENAI_TRANSCRIPTION_MODEL", "whisper-1"),
            chat_model=os.environ.get("OPENAI_CHAT_MODEL", "gpt-3.5-turbo"),
            tts_model=os.environ.get("OPENAI_TTS_MODEL", "tts-1"),
            tts_voice=os.environ.get("OPENAI_TTS_VOICE", "nova"),
            upload_dir=os.environ.get("UPLOAD_DIR", "uploads"),
            max_upload_bytes=_parse_int_env("MAX_UPLOAD_BYTES", default=DEFAULT_MAX_UPLOAD_BYTES),
            host=os.environ.get("HOST", "0.0.0.0"),
            port=_parse_int_env("PORT", default=3000),
            log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
            cors_origins=_parse_list_env("CORS_ORIGINS", "*"),
            scenario=os.environ.get("CONVERSATION_SCENARIO", "default"),
        )


def get_config() -> ApiConfig:
    """Get or create global config instance."""
    global _config
    if _config is None:
        _config = ApiConfig.from_env()
    return _config


# Global config instance (lazy loaded)
_config: Optional[ApiConfig] = None
