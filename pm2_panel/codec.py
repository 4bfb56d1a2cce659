"""Action codec: the compact identifiers carried by every panel control.

Discord echoes a control's ``custom_id`` back verbatim when it is clicked,
so the panel smuggles the little state it needs (what to do, to which
process, from which page) through that string instead of keeping a
session store.

Wire shape::

    pm2:<kind>:<target>:<page>

Absent fields are empty segments, so every token has exactly four fields.
Process names are never embedded, only the supervisor's process id.
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass

from .errors import MalformedToken, UnknownKind

PREFIX = "pm2"
DELIMITER = ":"
FIELD_COUNT = 4

# Discord rejects custom_ids longer than this
MAX_TOKEN_LENGTH = 100


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------

class ActionKind(str, enum.Enum):
    OPEN_MENU = "open"
    PAGINATE_PREV = "prev"
    PAGINATE_NEXT = "next"
    SELECT_PROCESS = "select"
    START = "start"
    STOP = "stop"
    RESTART = "restart"


_REQUIRED = "required"
_OPTIONAL = "optional"
_FORBIDDEN = "forbidden"

# kind -> (target rule, page rule)
_SHAPES: dict[ActionKind, tuple[str, str]] = {
    ActionKind.OPEN_MENU: (_FORBIDDEN, _FORBIDDEN),
    ActionKind.PAGINATE_PREV: (_FORBIDDEN, _OPTIONAL),
    ActionKind.PAGINATE_NEXT: (_FORBIDDEN, _OPTIONAL),
    ActionKind.SELECT_PROCESS: (_OPTIONAL, _OPTIONAL),
    ActionKind.START: (_REQUIRED, _FORBIDDEN),
    ActionKind.STOP: (_REQUIRED, _FORBIDDEN),
    ActionKind.RESTART: (_REQUIRED, _FORBIDDEN),
}

_PAGE_RE = re.compile(r"0|[1-9][0-9]{0,5}")
_TARGET_RE = re.compile(r"[\x21-\x39\x3b-\x7e]{1,64}")  # printable ASCII minus ':'


def is_valid_target(target_id: str) -> bool:
    return bool(_TARGET_RE.fullmatch(target_id))


def _check_field(rule: str, present: bool) -> bool:
    if rule == _REQUIRED:
        return present
    if rule == _FORBIDDEN:
        return not present
    return True


@dataclass(frozen=True)
class ActionToken:
    kind: ActionKind
    target_id: str | None = None
    page: int | None = None

    def __post_init__(self) -> None:
        if self.target_id is not None and not is_valid_target(self.target_id):
            raise ValueError(f"Target id not encodable: {self.target_id!r}")
        if self.page is not None and not 0 <= self.page <= 999_999:
            raise ValueError(f"Page out of range: {self.page}")
        target_rule, page_rule = _SHAPES[self.kind]
        if not _check_field(target_rule, self.target_id is not None):
            raise ValueError(f"{self.kind.value} token: target id is {target_rule}")
        if not _check_field(page_rule, self.page is not None):
            raise ValueError(f"{self.kind.value} token: page is {page_rule}")


def encode(token: ActionToken) -> str:
    raw = DELIMITER.join((
        PREFIX,
        token.kind.value,
        token.target_id or "",
        "" if token.page is None else str(token.page),
    ))
    if len(raw) > MAX_TOKEN_LENGTH:
        raise ValueError(f"Encoded token exceeds {MAX_TOKEN_LENGTH} chars: {raw!r}")
    return raw


def decode(raw: object) -> ActionToken:
    """Parse a custom_id back into an ActionToken.

    Only ``MalformedToken`` or ``UnknownKind`` are ever raised, whatever
    the input.
    """
    if not isinstance(raw, str):
        raise MalformedToken(raw, "not a string")
    if len(raw) > MAX_TOKEN_LENGTH:
        raise MalformedToken(raw, "too long")

    parts = raw.split(DELIMITER)
    if parts[0] != PREFIX:
        raise MalformedToken(raw, "unrecognised prefix")
    if len(parts) != FIELD_COUNT:
        raise MalformedToken(raw, f"expected {FIELD_COUNT} fields, got {len(parts)}")

    _, kind_raw, target_raw, page_raw = parts
    try:
        kind = ActionKind(kind_raw)
    except ValueError:
        raise UnknownKind(raw, f"unknown kind {kind_raw!r}") from None

    if target_raw and not is_valid_target(target_raw):
        raise MalformedToken(raw, "invalid target id")
    if page_raw and not _PAGE_RE.fullmatch(page_raw):
        raise MalformedToken(raw, "invalid page")

    target_rule, page_rule = _SHAPES[kind]
    if not _check_field(target_rule, bool(target_raw)):
        raise MalformedToken(raw, f"target id is {target_rule} for {kind.value}")
    if not _check_field(page_rule, bool(page_raw)):
        raise MalformedToken(raw, f"page is {page_rule} for {kind.value}")

    return ActionToken(
        kind=kind,
        target_id=target_raw or None,
        page=int(page_raw) if page_raw else None,
    )


# ---------------------------------------------------------------------------
# Page indicator: the visible "Page X/Y" caption
# ---------------------------------------------------------------------------

_INDICATOR_RE = re.compile(r"\bPage (\d{1,6})/(\d{1,6})\b")


def format_page_indicator(page: int, total_pages: int) -> str:
    return f"Page {page + 1}/{total_pages}"


def parse_page_indicator(text: object) -> tuple[int, int]:
    """Return ``(page, total_pages)`` (zero-based page) from a rendered caption.

    Fails closed: anything that does not carry a well-formed indicator raises
    ``MalformedToken`` rather than guessing a page.
    """
    if not isinstance(text, str):
        raise MalformedToken(text, "no page indicator")
    match = _INDICATOR_RE.search(text)
    if not match:
        raise MalformedToken(text, "no page indicator")
    shown, total = int(match.group(1)), int(match.group(2))
    if total < 1 or not 1 <= shown <= total:
        raise MalformedToken(text, "page indicator out of range")
    return shown - 1, total
