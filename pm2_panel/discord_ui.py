"""Discord adapter: renders view models as discord.py message payloads.

Each function returns a kwargs dict ready for ``channel.send``,
``message.edit``, ``interaction.response.send_message`` and friends.
Controls carry no callbacks: clicks are routed by ``custom_id`` through
``PanelBot.on_interaction`` so they keep working across restarts.
"""

from __future__ import annotations

from typing import Any

import discord

from .models import ActionChoiceView, Control, ControlStyle, PageView, SummaryView

# Embed colour for the live view (blue)
LIVE_VIEW_COLOUR = discord.Colour(0x0099FF)

_BUTTON_STYLES = {
    ControlStyle.PRIMARY: discord.ButtonStyle.primary,
    ControlStyle.SECONDARY: discord.ButtonStyle.secondary,
    ControlStyle.SUCCESS: discord.ButtonStyle.success,
    ControlStyle.DANGER: discord.ButtonStyle.danger,
}


def _button(control: Control, row: int = 0) -> discord.ui.Button:
    return discord.ui.Button(
        style=_BUTTON_STYLES[control.style],
        label=control.label,
        custom_id=control.custom_id,
        disabled=control.disabled,
        row=row,
    )


class RoutedView(discord.ui.View):
    """A view whose clicks are routed by custom_id, never through the view store."""

    def is_dispatchable(self) -> bool:
        return False


def _view(*items: discord.ui.Item) -> discord.ui.View:
    view = RoutedView(timeout=None)
    for item in items:
        view.add_item(item)
    return view


def summary_payload(summary: SummaryView) -> dict[str, Any]:
    embed = discord.Embed(
        title=summary.title,
        description=summary.description,
        colour=LIVE_VIEW_COLOUR,
        timestamp=summary.timestamp,
    )
    return {
        "embed": embed,
        "view": _view(*(_button(c) for c in summary.controls)),
    }


def page_payload(page: PageView) -> dict[str, Any]:
    items: list[discord.ui.Item] = []
    # Discord refuses a select menu without options
    if page.choices:
        items.append(discord.ui.Select(
            custom_id=page.menu_id,
            placeholder=page.placeholder,
            options=[discord.SelectOption(label=c.label, value=c.value) for c in page.choices],
            row=0,
        ))
    items.append(_button(page.prev, row=1))
    items.append(_button(page.next, row=1))
    return {"content": page.caption, "view": _view(*items)}


def action_payload(choices: ActionChoiceView) -> dict[str, Any]:
    return {
        "content": choices.caption,
        "view": _view(*(_button(c) for c in choices.controls)),
    }
