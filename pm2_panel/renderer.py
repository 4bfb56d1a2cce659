"""View renderer: turns a process snapshot into transport-neutral views.

Everything here is pure: no I/O, no clock, no shared state.  The Discord
adapter (``discord_ui``) decides how a view LOOKS; this module decides what
it SAYS.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from datetime import datetime

from .codec import ActionKind, ActionToken, encode, format_page_indicator
from .models import (
    ActionChoiceView,
    Choice,
    Control,
    ControlStyle,
    PageView,
    ProcessRecord,
    SummaryView,
)

# Discord allows at most 25 options per select menu
ITEMS_PER_PAGE = 25

SUMMARY_TITLE = "Current PM2 Processes"
NO_PROCESSES = "No processes found."

# Discord limits
EMBED_DESCRIPTION_LIMIT = 4096
OPTION_LABEL_LIMIT = 100

_OUTCOME_VERBS = {
    ActionKind.START: "started",
    ActionKind.STOP: "stopped",
    ActionKind.RESTART: "restarted",
}


def total_pages(count: int) -> int:
    """Number of pages for ``count`` items; an empty list still has one page."""
    return max(math.ceil(count / ITEMS_PER_PAGE), 1)


def clamp_page(page: int, count: int) -> int:
    return min(max(page, 0), total_pages(count) - 1)


# ---------------------------------------------------------------------------
# Live view summary
# ---------------------------------------------------------------------------

def summary_line(record: ProcessRecord) -> str:
    return f"ID: {record.id} | Name: {record.name} | Status: `{record.status.value}`"


def render_summary(snapshot: Sequence[ProcessRecord], now: datetime) -> SummaryView:
    if snapshot:
        description = _fit_lines([summary_line(p) for p in snapshot], EMBED_DESCRIPTION_LIMIT)
    else:
        description = NO_PROCESSES

    manage = Control(
        custom_id=encode(ActionToken(ActionKind.OPEN_MENU)),
        label="Manage PM2",
        style=ControlStyle.PRIMARY,
    )
    return SummaryView(
        title=SUMMARY_TITLE,
        description=description,
        timestamp=now,
        controls=(manage,),
    )


def _fit_lines(lines: list[str], limit: int) -> str:
    """Join lines, dropping the tail (with a count) if the text is too long."""
    text = "\n".join(lines)
    if len(text) <= limit:
        return text

    kept: list[str] = []
    used = 0
    for i, line in enumerate(lines):
        remaining = len(lines) - i
        footer = f"\n…and {remaining} more"
        cost = len(line) + (1 if kept else 0)
        if used + cost + len(footer) > limit:
            kept.append(footer.lstrip("\n"))
            break
        kept.append(line)
        used += cost
    return "\n".join(kept)


# ---------------------------------------------------------------------------
# Paginated selection
# ---------------------------------------------------------------------------

def choice_label(record: ProcessRecord) -> str:
    label = f"ID: {record.id} - {record.name}"
    if len(label) > OPTION_LABEL_LIMIT:
        label = label[: OPTION_LABEL_LIMIT - 1] + "…"
    return label


def render_page(snapshot: Sequence[ProcessRecord], page: int) -> PageView:
    """Render one page of the process picker.

    ``page`` is clamped into range first, so any integer is accepted.  The
    caption carries a ``Page X/Y`` indicator that can be parsed back to
    recover the page from the displayed message alone.
    """
    count = len(snapshot)
    pages = total_pages(count)
    page = clamp_page(page, count)

    start = page * ITEMS_PER_PAGE
    chunk = snapshot[start:start + ITEMS_PER_PAGE]
    choices = tuple(Choice(label=choice_label(p), value=str(p.id)) for p in chunk)

    indicator = format_page_indicator(page, pages)
    if choices:
        caption = f"Select a process: ({indicator})"
        placeholder = f"Processes {start + 1}-{start + len(chunk)} of {count}"
    else:
        caption = f"{NO_PROCESSES} ({indicator})"
        placeholder = NO_PROCESSES

    prev = Control(
        custom_id=encode(ActionToken(ActionKind.PAGINATE_PREV, page=page)),
        label="Previous",
        disabled=page == 0,
    )
    nxt = Control(
        custom_id=encode(ActionToken(ActionKind.PAGINATE_NEXT, page=page)),
        label="Next",
        disabled=page >= pages - 1,
    )
    return PageView(
        caption=caption,
        page=page,
        total_pages=pages,
        menu_id=encode(ActionToken(ActionKind.SELECT_PROCESS, page=page)),
        placeholder=placeholder,
        choices=choices,
        prev=prev,
        next=nxt,
    )


# ---------------------------------------------------------------------------
# Action choices and outcomes
# ---------------------------------------------------------------------------

def render_action_choices(process_id: str) -> ActionChoiceView:
    buttons = (
        (ActionKind.START, "Start", ControlStyle.SUCCESS),
        (ActionKind.STOP, "Stop", ControlStyle.DANGER),
        (ActionKind.RESTART, "Restart", ControlStyle.PRIMARY),
    )
    return ActionChoiceView(
        caption=f"You selected Process-ID **{process_id}**. What would you like to do?",
        controls=tuple(
            Control(
                custom_id=encode(ActionToken(kind, target_id=process_id)),
                label=label,
                style=style,
            )
            for kind, label, style in buttons
        ),
    )


def render_outcome(
    kind: ActionKind,
    process_id: str,
    ok: bool,
    error_detail: str | None = None,
) -> str:
    if ok:
        return f"Process **{process_id}** has been {_OUTCOME_VERBS[kind]}."
    if error_detail:
        return f"Error during action {kind.value} for process {process_id}: {error_detail}"
    return f"Error during action {kind.value} for process {process_id}."


def render_unavailable(detail: str, now: datetime) -> SummaryView:
    """Live view shown when the very first snapshot could not be taken."""
    view = render_summary((), now)
    return SummaryView(
        title=view.title,
        description=f"Process list unavailable: {detail}",
        timestamp=now,
        controls=view.controls,
    )
