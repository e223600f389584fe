"""Runtime configuration for explorer runs and the interactive server."""

import os
from dataclasses import dataclass, field
from typing import Dict, Optional

from dotenv import load_dotenv


DEFAULT_INPUT_VALUES: Dict[str, str] = {
    "text": "Test item",
    "email": "test@example.com",
    "password": "password123",
    "number": "42",
}

RESTORE_REPLAY = "replay"
RESTORE_RESET = "reset"


@dataclass
class ExplorerConfig:
    url: str = "http://localhost:3000"
    max_states: int = 100
    max_depth: int = 10
    headless: bool = True
    # per-action timeout handed to Playwright
    timeout_ms: int = 30000
    settle_ms: int = 300
    slow_mo_ms: int = 0
    viewport_width: int = 1280
    viewport_height: int = 720
    input_values: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_INPUT_VALUES))
    output_path: str = "./output/graph.json"
    restore_strategy: str = RESTORE_REPLAY

    def __post_init__(self) -> None:
        if self.restore_strategy not in (RESTORE_REPLAY, RESTORE_RESET):
            raise ValueError(f"Unknown restore strategy: {self.restore_strategy}")
        if "text" not in self.input_values:
            self.input_values["text"] = DEFAULT_INPUT_VALUES["text"]

    @classmethod
    def from_env(cls, **overrides) -> "ExplorerConfig":
        """Build a config from ``WAGGEN_*`` variables (``.env`` honoured).

        Keyword overrides whose value is not ``None`` win over the environment.
        """
        load_dotenv()
        env = os.environ
        values = {
            "url": env.get("WAGGEN_URL", cls.url),
            "max_states": int(env.get("WAGGEN_MAX_STATES", cls.max_states)),
            "max_depth": int(env.get("WAGGEN_MAX_DEPTH", cls.max_depth)),
            "headless": env.get("WAGGEN_HEADLESS", "true").lower() not in ("0", "false", "no"),
            "timeout_ms": int(env.get("WAGGEN_TIMEOUT_MS", cls.timeout_ms)),
            "settle_ms": int(env.get("WAGGEN_SETTLE_MS", cls.settle_ms)),
            "output_path": env.get("WAGGEN_OUTPUT", cls.output_path),
            "restore_strategy": env.get("WAGGEN_RESTORE", cls.restore_strategy),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


@dataclass
class ServerConfig:
    host: str = "127.0.0.1"
    port: int = 3001
    session_file: Optional[str] = None
    output_path: str = "./output/graph.json"

    @classmethod
    def from_env(cls, **overrides) -> "ServerConfig":
        load_dotenv()
        env = os.environ
        values = {
            "host": env.get("WAGGEN_HOST", cls.host),
            "port": int(env.get("WAGGEN_PORT", cls.port)),
            "session_file": env.get("WAGGEN_SESSION_FILE") or None,
            "output_path": env.get("WAGGEN_OUTPUT", cls.output_path),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
