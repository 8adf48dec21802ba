"""Environment-driven configuration: paths, toggles and backend credentials."""

import os
from dataclasses import dataclass
from pathlib import Path

from .errors import ConfigurationError

DEFAULT_LANGFUSE_BASE_URL = "https://cloud.langfuse.com"
HOOK_WARNING_THRESHOLD_SECONDS = 180

STATE_FILE_NAME = "cc-langfuse_state.json"
LOG_FILE_NAME = "cc-langfuse_hook.log"


@dataclass(frozen=True)
class LangfuseSettings:
    public_key: str
    secret_key: str
    base_url: str = DEFAULT_LANGFUSE_BASE_URL


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() == "true"


def _first_env(*names: str) -> str | None:
    for name in names:
        value = os.environ.get(name)
        if value:
            return value
    return None


def is_tracing_enabled() -> bool:
    """Return True only when TRACE_TO_LANGFUSE is explicitly set to true."""
    return _env_flag("TRACE_TO_LANGFUSE")


def is_debug_enabled() -> bool:
    return _env_flag("CC_LANGFUSE_DEBUG")


def get_state_dir() -> Path:
    """Return the directory holding the cursor file and the hook log."""
    env = os.environ.get("AICHAT_TRACE_STATE_DIR")
    if env:
        return Path(env)

    return Path.home() / ".claude" / "state"


def get_state_file() -> Path:
    return get_state_dir() / STATE_FILE_NAME


def get_log_file() -> Path:
    return get_state_dir() / LOG_FILE_NAME


def get_claude_projects_path() -> Path:
    """Return the path to Claude Code's projects directory."""
    env = os.environ.get("AICHAT_CLAUDE_PATH")
    if env:
        return Path(env)

    return Path.home() / ".claude" / "projects"


def load_langfuse_settings() -> LangfuseSettings:
    """Read Langfuse credentials from the environment.

    The ``CC_``-prefixed variables take precedence so the hook can use keys
    distinct from any Langfuse SDK configured in the same shell.

    Raises:
        ConfigurationError: if either key is missing.
    """
    public_key = _first_env("CC_LANGFUSE_PUBLIC_KEY", "LANGFUSE_PUBLIC_KEY")
    secret_key = _first_env("CC_LANGFUSE_SECRET_KEY", "LANGFUSE_SECRET_KEY")
    if not public_key or not secret_key:
        raise ConfigurationError(
            "Langfuse API keys not set (CC_LANGFUSE_PUBLIC_KEY / CC_LANGFUSE_SECRET_KEY)"
        )

    base_url = _first_env(
        "CC_LANGFUSE_BASE_URL",
        "LANGFUSE_BASE_URL",
        "CC_LANGFUSE_HOST",
        "LANGFUSE_HOST",
    ) or DEFAULT_LANGFUSE_BASE_URL

    if not base_url.startswith(("http://", "https://")):
        raise ConfigurationError(f"Invalid Langfuse base URL: {base_url!r}")

    return LangfuseSettings(
        public_key=public_key,
        secret_key=secret_key,
        base_url=base_url.rstrip("/"),
    )
