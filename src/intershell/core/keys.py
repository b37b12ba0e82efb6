"""Key-press model and raw input parsing.

Pure transforms from the bytes a terminal delivers in raw mode to
:class:`KeyPress` values, plus the partial-match predicate used by
hotkeys and the ``wait_for_*`` helpers.
"""

from __future__ import annotations

from dataclasses import dataclass


# ---------------------------------------------------------------------------
# Key values
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class KeyPress:
    """A single decoded key press."""

    sequence: str
    """Raw characters received from the terminal."""

    name: str | None = None
    """Logical key name (``"return"``, ``"up"``, ``"a"``…)."""

    ctrl: bool = False
    meta: bool = False
    shift: bool = False


@dataclass(frozen=True, slots=True)
class KeyPattern:
    """A partial :class:`KeyPress`; ``None`` fields match anything."""

    name: str | None = None
    ctrl: bool | None = None
    meta: bool | None = None
    shift: bool | None = None
    sequence: str | None = None

    def __str__(self) -> str:
        parts = [
            label
            for label, flag in (("ctrl", self.ctrl), ("meta", self.meta), ("shift", self.shift))
            if flag
        ]
        parts.append(self.name or self.sequence or "?")
        return "+".join(parts)


def matches(key: KeyPress, pattern: KeyPattern) -> bool:
    """Return ``True`` when every non-``None`` field of *pattern* equals *key*'s."""
    for field in ("name", "ctrl", "meta", "shift", "sequence"):
        expected = getattr(pattern, field)
        if expected is not None and getattr(key, field) != expected:
            return False
    return True


def matches_any(key: KeyPress, patterns: tuple[KeyPattern, ...]) -> bool:
    return any(matches(key, pattern) for pattern in patterns)


# ---------------------------------------------------------------------------
# Escape-sequence table
# ---------------------------------------------------------------------------

_SEQUENCES: dict[str, KeyPress] = {
    "\x03": KeyPress("\x03", "c", ctrl=True),
    "\r": KeyPress("\r", "return"),
    "\n": KeyPress("\n", "return"),
    "\x1b[A": KeyPress("\x1b[A", "up"),
    "\x1b[B": KeyPress("\x1b[B", "down"),
    "\x1b[D": KeyPress("\x1b[D", "left"),
    "\x1b[C": KeyPress("\x1b[C", "right"),
    " ": KeyPress(" ", "space"),
    "\x7f": KeyPress("\x7f", "backspace"),
    "\x08": KeyPress("\x08", "backspace"),
    "\x1b": KeyPress("\x1b", "escape"),
    "\t": KeyPress("\t", "tab"),
    "\x1b[Z": KeyPress("\x1b[Z", "tab", shift=True),
    # Function keys
    "\x1bOP": KeyPress("\x1bOP", "f1"),
    "\x1bOQ": KeyPress("\x1bOQ", "f2"),
    "\x1bOR": KeyPress("\x1bOR", "f3"),
    "\x1bOS": KeyPress("\x1bOS", "f4"),
    "\x1b[15~": KeyPress("\x1b[15~", "f5"),
    "\x1b[17~": KeyPress("\x1b[17~", "f6"),
    "\x1b[18~": KeyPress("\x1b[18~", "f7"),
    "\x1b[19~": KeyPress("\x1b[19~", "f8"),
    "\x1b[20~": KeyPress("\x1b[20~", "f9"),
    "\x1b[21~": KeyPress("\x1b[21~", "f10"),
    "\x1b[23~": KeyPress("\x1b[23~", "f11"),
    "\x1b[24~": KeyPress("\x1b[24~", "f12"),
    # Navigation keys
    "\x1b[H": KeyPress("\x1b[H", "home"),
    "\x1b[F": KeyPress("\x1b[F", "end"),
    "\x1b[1~": KeyPress("\x1b[1~", "home"),
    "\x1b[4~": KeyPress("\x1b[4~", "end"),
    "\x1bOH": KeyPress("\x1bOH", "home"),
    "\x1bOF": KeyPress("\x1bOF", "end"),
    "\x1b[5~": KeyPress("\x1b[5~", "pageup"),
    "\x1b[6~": KeyPress("\x1b[6~", "pagedown"),
    "\x1b[2~": KeyPress("\x1b[2~", "insert"),
    "\x1b[3~": KeyPress("\x1b[3~", "delete"),
}

# Longest first so "\x1b[15~" wins over "\x1b".
_ORDERED_SEQUENCES: tuple[str, ...] = tuple(
    sorted((seq for seq in _SEQUENCES if len(seq) > 1), key=len, reverse=True)
)


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

def parse_key(sequence: str) -> KeyPress:
    """Decode exactly one key from *sequence*.

    Unknown multi-character sequences are returned verbatim as the key
    name.
    """
    known = _SEQUENCES.get(sequence)
    if known is not None:
        return known

    if len(sequence) == 1:
        code = ord(sequence)
        if code < 32:
            return KeyPress(sequence, chr(code + 96), ctrl=True)
        return KeyPress(sequence, sequence, shift=sequence.isupper())

    if len(sequence) == 2 and sequence[0] == "\x1b":
        return KeyPress(sequence, sequence[1], meta=True)

    return KeyPress(sequence, sequence)


def _control_sequence(data: str, index: int) -> str | None:
    """Return the unrecognised CSI/SS3 sequence starting at *index*.

    Parameter bytes are consumed up to and including the final byte
    (``@`` to ``~``).  An unterminated sequence takes the rest of the
    chunk.
    """
    if data[index + 1:index + 2] not in ("[", "O"):
        return None
    end = index + 2
    while end < len(data):
        char = data[end]
        if char == "\x1b":
            break
        end += 1
        if "@" <= char <= "~":
            break
    return data[index:end]


def parse_keys(data: str) -> list[KeyPress]:
    """Split a raw input chunk into individual key presses.

    A single read from a raw-mode terminal can carry several keys
    (fast typing, paste).  Known escape sequences are matched greedily;
    everything else is decoded one character at a time.
    """
    keys: list[KeyPress] = []
    index = 0
    while index < len(data):
        if data[index] == "\x1b":
            token = next(
                (seq for seq in _ORDERED_SEQUENCES if data.startswith(seq, index)),
                None,
            )
            if token is None:
                token = _control_sequence(data, index)
            if token is None:
                # Alt+<char> arrives as ESC followed by the character.
                nxt = data[index + 1:index + 2]
                token = "\x1b" + nxt if nxt and nxt != "\x1b" else "\x1b"
        elif data.startswith("\r\n", index):
            token = "\r\n"
            keys.append(_SEQUENCES["\r"])
            index += len(token)
            continue
        else:
            token = data[index]
        keys.append(parse_key(token))
        index += len(token)
    return keys
