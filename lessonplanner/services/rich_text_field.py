# services/rich_text_field.py
"""
Editable rich-text field.

Holds one restricted HTML fragment and reconciles two writers:

- the user, editing through the field (input, typing, toolbar commands);
  every change is reported through `on_change`;
- the application, writing through `set_content` (e.g. AI results).

External writes must never clobber an edit in progress, so the field runs
an explicit interaction state machine:

    IDLE --focus--> EDITING --set_content--> PENDING_EXTERNAL_UPDATE
      ^                |                              |
      +------blur------+-------------blur-------------+  (pending value applied)
"""

from enum import Enum
from typing import Callable, Optional, Tuple

from lessonplanner.core.logging_config import get_logger
from lessonplanner.utils.rich_text import Fragment

logger = get_logger(__name__)

ChangeCallback = Callable[[str], None]


class FieldState(str, Enum):
    IDLE = "idle"
    EDITING = "editing"
    PENDING_EXTERNAL_UPDATE = "pending_external_update"


class RichTextField:
    def __init__(
        self,
        name: str,
        label: str,
        placeholder: str = "",
        optional: bool = False,
        on_change: Optional[ChangeCallback] = None,
    ):
        self.name = name
        self.label = label
        self.placeholder = placeholder or "Start typing..."
        self.optional = optional
        self.on_change = on_change

        self._fragment = Fragment()
        self._html = ""
        self._state = FieldState.IDLE
        self._pending: Optional[str] = None
        self._selection: Tuple[int, int] = (0, 0)
        # style toggled at a collapsed caret, used by the next typed text
        self._caret_style: Optional[Tuple[bool, bool]] = None

    # -------------------------
    # State
    # -------------------------
    @property
    def state(self) -> FieldState:
        return self._state

    @property
    def is_focused(self) -> bool:
        return self._state is not FieldState.IDLE

    @property
    def content(self) -> str:
        return self._html

    @property
    def pending_content(self) -> Optional[str]:
        return self._pending

    @property
    def selection(self) -> Tuple[int, int]:
        return self._selection

    def is_empty(self) -> bool:
        return self._fragment.is_empty()

    # -------------------------
    # External writes
    # -------------------------
    def set_content(self, html: Optional[str]):
        """Write from outside the field. Deferred while the user is editing."""
        html = html or ""
        if self._state is FieldState.IDLE:
            self._load(html)
            return
        if html == self._html:
            # nothing to reconcile
            self._pending = None
            self._state = FieldState.EDITING
            return
        logger.debug("Deferring external update of '%s' until blur", self.name)
        self._pending = html
        self._state = FieldState.PENDING_EXTERNAL_UPDATE

    def _load(self, html: str):
        self._fragment = Fragment.parse(html)
        self._html = self._fragment.to_html()
        end = len(self._fragment.plain_text)
        self._selection = (end, end)
        self._caret_style = None

    # -------------------------
    # Focus
    # -------------------------
    def focus(self):
        if self._state is FieldState.IDLE:
            self._state = FieldState.EDITING

    def blur(self):
        if self._state is FieldState.IDLE:
            return
        pending = self._pending
        self._pending = None
        self._state = FieldState.IDLE
        self._caret_style = None
        if pending is not None and pending != self._html:
            self._load(pending)
            # keep the owner in step with what the field now shows
            self._notify()

    # -------------------------
    # User edits
    # -------------------------
    def _notify(self):
        if self.on_change:
            self.on_change(self._html)

    def _commit_edit(self):
        html = self._fragment.to_html()
        if html != self._html:
            self._html = html
            self._notify()

    def input(self, html: Optional[str]):
        """Whole-content replacement coming from the editing surface."""
        self.focus()
        self._fragment = Fragment.parse(html or "")
        end = len(self._fragment.plain_text)
        self._selection = (end, end)
        self._caret_style = None
        self._commit_edit()

    def select(self, start: int, end: Optional[int] = None):
        self.focus()
        end = start if end is None else end
        self._selection = (self._fragment.clamp(start), self._fragment.clamp(end))
        self._caret_style = None

    def type_text(self, text: str):
        """Replace the selection with `text`, as typing or pasting does."""
        self.focus()
        start, end = sorted(self._selection)
        bold, italic = self._caret_style or self._fragment.style_at(start)
        self._fragment.delete(start, end)
        caret = self._fragment.insert(start, text, bold=bold, italic=italic)
        self._selection = (caret, caret)
        self._caret_style = None
        self._commit_edit()

    def _toggle(self, attr: str):
        self.focus()
        start, end = self._selection
        if start == end:
            bold, italic = self._caret_style or self._fragment.style_at(start)
            if attr == "bold":
                bold = not bold
            else:
                italic = not italic
            self._caret_style = (bold, italic)
            return
        self._fragment.toggle_style(start, end, attr)
        self._commit_edit()

    def toggle_bold(self):
        self._toggle("bold")

    def toggle_italic(self):
        self._toggle("italic")

    def toggle_bulleted_list(self):
        self.focus()
        start, end = self._selection
        self._fragment.toggle_bullets(start, end)
        self._commit_edit()

    def apply_command(self, command: str):
        """Dispatch a toolbar command by name: bold, italic or bulleted_list."""
        handlers = {
            "bold": self.toggle_bold,
            "italic": self.toggle_italic,
            "bulleted_list": self.toggle_bulleted_list,
        }
        try:
            handler = handlers[command]
        except KeyError:
            raise ValueError(f"Unknown formatting command: {command}") from None
        handler()
