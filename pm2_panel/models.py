from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime


# ---------------------------------------------------------------------------
# Process state reported by the supervisor
# ---------------------------------------------------------------------------

class ProcessStatus(str, enum.Enum):
    ONLINE = "online"
    STOPPED = "stopped"
    ERRORED = "errored"
    LAUNCHING = "launching"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ProcessRecord:
    id: str
    name: str
    status: ProcessStatus = ProcessStatus.UNKNOWN


# Supervisor order is preserved; pagination slices depend on it.
ProcessSnapshot = tuple[ProcessRecord, ...]


# ---------------------------------------------------------------------------
# View models: transport-neutral output of the renderer
# ---------------------------------------------------------------------------

class ControlStyle(enum.Enum):
    PRIMARY = "primary"
    SECONDARY = "secondary"
    SUCCESS = "success"
    DANGER = "danger"


@dataclass(frozen=True)
class Control:
    """A clickable button carrying an encoded action token."""
    custom_id: str
    label: str
    style: ControlStyle = ControlStyle.SECONDARY
    disabled: bool = False


@dataclass(frozen=True)
class Choice:
    label: str
    value: str


@dataclass(frozen=True)
class SummaryView:
    title: str
    description: str
    timestamp: datetime
    controls: tuple[Control, ...] = ()


@dataclass(frozen=True)
class PageView:
    caption: str
    page: int
    total_pages: int
    menu_id: str
    placeholder: str
    choices: tuple[Choice, ...]
    prev: Control
    next: Control


@dataclass(frozen=True)
class ActionChoiceView:
    caption: str
    controls: tuple[Control, ...] = field(default_factory=tuple)
