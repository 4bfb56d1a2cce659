from __future__ import annotations

import os
from dataclasses import dataclass
from functools import partial
from pathlib import Path
from typing import Callable

from dotenv import load_dotenv

from .supervisor import McpProcessManagerClient, Pm2Client, SupervisorClient
from .supervisor.mcp_client import DEFAULT_URL

BACKENDS = ("pm2", "mcp")


@dataclass(frozen=True)
class Config:
    discord_token: str
    channel_id: int
    supervisor_backend: str = "pm2"
    pm2_bin: str = "pm2"
    process_manager_url: str = DEFAULT_URL
    supervisor_timeout: float = 15.0

    def supervisor_factory(self) -> Callable[[], SupervisorClient]:
        """Return a callable producing a fresh client for the configured backend."""
        if self.supervisor_backend == "mcp":
            return partial(
                McpProcessManagerClient,
                url=self.process_manager_url,
                timeout=self.supervisor_timeout,
            )
        return partial(Pm2Client, binary=self.pm2_bin, timeout=self.supervisor_timeout)

    @classmethod
    def from_env(cls, env_path: str | Path | None = None) -> Config:
        load_dotenv(env_path)

        token = os.environ["DISCORD_TOKEN"]

        raw_channel = os.environ["PM2_CHANNEL_ID"].strip()
        if not raw_channel.isdigit():
            raise ValueError(f"PM2_CHANNEL_ID must be a numeric channel id, got {raw_channel!r}")

        backend = os.getenv("SUPERVISOR_BACKEND", "pm2").strip().lower()
        if backend not in BACKENDS:
            raise ValueError(f"SUPERVISOR_BACKEND must be one of {', '.join(BACKENDS)}, got {backend!r}")

        return cls(
            discord_token=token,
            channel_id=int(raw_channel),
            supervisor_backend=backend,
            pm2_bin=os.getenv("PM2_BIN", "pm2"),
            process_manager_url=os.getenv("PROCESS_MANAGER_URL", DEFAULT_URL),
            supervisor_timeout=float(os.getenv("SUPERVISOR_TIMEOUT", "15")),
        )
