"""Command grammar for ghast-ctl.

A command is a single line of text: a verb followed by positional
arguments.  Arguments are separated by whitespace, except that a
double-quoted run is kept together as one argument with its surrounding
quotes removed::

    navigate https://example.com
    type "#search" "hello world"
    navigate-force https://slow.example 2000

The verb is case-insensitive; arguments are passed through untouched.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

# A token is a run of non-space, non-quote characters and/or complete
# "quoted" segments.  A stray unbalanced quote matches nothing and is skipped.
_TOKEN_RE = re.compile(r'(?:[^\s"]+|"[^"]*")+')
_EDGE_QUOTES_RE = re.compile(r'^"|"$')

IMAGE_PLACEHOLDER = "[binary image]"


class Verb(str, Enum):
    # Navigation
    NAVIGATE = "navigate"
    NAVIGATE_FORCE = "navigate-force"
    BACK = "back"
    FORWARD = "forward"
    REFRESH = "refresh"
    # Interaction
    CLICK = "click"
    TYPE = "type"
    CLEAR_AND_TYPE = "clear-and-type"
    PRESS = "press"
    SELECT = "select"
    HOVER = "hover"
    SCROLL = "scroll"
    # Waiting
    WAIT = "wait"
    WAIT_FOR = "wait-for"
    # Reading
    INFO = "info"
    TEXT = "text"
    TEXT_FULL = "text-full"
    HTML = "html"
    HTML_FULL = "html-full"
    LINKS = "links"
    BUTTONS = "buttons"
    INPUTS = "inputs"
    FORMS = "forms"
    INTERACTIVE = "interactive"
    COOKIES = "cookies"
    # Capture
    SCREENSHOT = "screenshot"
    # Scripting
    EVAL = "eval"
    # Tab management
    TABS = "tabs"
    NEW_TAB = "new-tab"
    SWITCH_TAB = "switch-tab"
    CLOSE_TAB = "close-tab"
    CLOSE_OTHER_TABS = "close-other-tabs"


VERB_ALIASES: dict[str, Verb] = {
    "goto": Verb.NAVIGATE,
    "goto-force": Verb.NAVIGATE_FORCE,
    "url": Verb.INFO,
}

# Commands that may change the tab set or which tab is active.
TAB_VERBS = frozenset(
    {Verb.NEW_TAB, Verb.SWITCH_TAB, Verb.CLOSE_TAB, Verb.CLOSE_OTHER_TABS}
)


class ContentKind(str, Enum):
    STRUCTURED = "json"
    MARKUP = "html"
    IMAGE = "image"


class CommandError(Exception):
    """A command-level failure: bad or missing argument, disallowed operation."""


@dataclass
class Command:
    name: str
    args: list[str] = field(default_factory=list)
    text: str = ""

    @property
    def verb(self) -> Verb | None:
        """Resolve ``name`` to a known verb, or ``None`` if unsupported."""
        if self.name in VERB_ALIASES:
            return VERB_ALIASES[self.name]
        try:
            return Verb(self.name)
        except ValueError:
            return None

    def arg(self, index: int, name: str) -> str:
        """Return the required positional argument at *index*."""
        if index >= len(self.args) or not self.args[index]:
            raise CommandError(f"Missing argument: {name}")
        return self.args[index]

    def int_arg(self, index: int, default: int) -> int:
        """Return the argument at *index* as a positive int, else *default*."""
        try:
            value = int(self.args[index])
        except (IndexError, ValueError):
            return default
        return value if value > 0 else default


@dataclass
class CommandResult:
    success: bool
    data: Any = None
    error: str | None = None
    content_kind: ContentKind = ContentKind.STRUCTURED
    binary: bytes | None = None

    @classmethod
    def ok(cls, data: Any = None) -> CommandResult:
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str) -> CommandResult:
        return cls(success=False, error=error)

    def summary(self) -> Any:
        """Return the form of this result stored in the history log."""
        if self.content_kind is ContentKind.IMAGE:
            return IMAGE_PLACEHOLDER
        if not self.success:
            return {"error": self.error}
        return self.data


def parse_command(text: str) -> Command:
    """Split *text* into a lower-cased verb and its positional arguments."""
    parts = _TOKEN_RE.findall(text.strip())
    name = parts[0].lower() if parts else ""
    args = [_EDGE_QUOTES_RE.sub("", part) for part in parts[1:]]
    return Command(name=name, args=args, text=text)
