"""Virtual keyboard and mouse using uinput."""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional, Tuple

from evdev import AbsInfo, UInput, ecodes

logger = logging.getLogger(__name__)


class VirtualInput:
    """Manage a virtual keyboard/mouse backed by /dev/uinput.

    Coordinates are written as given; bounds checking is the caller's job.
    """

    def __init__(
        self,
        viewport: Tuple[int, int],
        device_name: str = "installpilot-virtual-input",
    ) -> None:
        width, height = viewport
        abs_caps = [
            # Full-screen absolute axes so desktop environments recognize a pointer.
            (ecodes.ABS_X, AbsInfo(0, 0, max(width - 1, 0), 0, 0, 0)),
            (ecodes.ABS_Y, AbsInfo(0, 0, max(height - 1, 0), 0, 0, 0)),
        ]

        capabilities = {
            ecodes.EV_KEY: self._keyboard_keys(),
            ecodes.EV_ABS: abs_caps,
            ecodes.EV_MSC: [ecodes.MSC_SCAN],
        }

        self._ui = UInput(capabilities, name=device_name, bustype=0x03)
        self._viewport = viewport
        logger.info(
            "Initialized virtual input device",
            extra={"device": device_name, "viewport": f"{width}x{height}"},
        )

    def close(self) -> None:
        self._ui.close()

    async def move(self, x: int, y: int) -> None:
        """Move pointer to absolute coordinates."""
        self._write_position(x, y)
        await asyncio.sleep(0.01)

    async def click(self, x: int, y: int, button: str = "left", click_count: int = 1) -> None:
        """Move, then press and release, without yielding in between."""
        code = self._button_code(button)
        self._write_position(x, y)
        for _ in range(max(click_count, 1)):
            self._ui.write(ecodes.EV_KEY, code, 1)
            self._ui.syn()
            self._ui.write(ecodes.EV_KEY, code, 0)
            self._ui.syn()
        await asyncio.sleep(0.02)

    async def drag(self, start: Tuple[int, int], end: Tuple[int, int]) -> None:
        """Press at start, jump to end, release."""
        self._write_position(*start)
        self._ui.write(ecodes.EV_KEY, ecodes.BTN_LEFT, 1)
        self._ui.syn()
        self._write_position(*end)
        self._ui.write(ecodes.EV_KEY, ecodes.BTN_LEFT, 0)
        self._ui.syn()
        await asyncio.sleep(0.02)

    async def type_text(self, text: str) -> None:
        """Type text using key events."""
        for char in text:
            self._emit_char(char)
            await asyncio.sleep(0.005)

    def _write_position(self, x: int, y: int) -> None:
        self._ui.write(ecodes.EV_ABS, ecodes.ABS_X, int(x))
        self._ui.write(ecodes.EV_ABS, ecodes.ABS_Y, int(y))
        self._ui.syn()

    def _emit_char(self, char: str) -> None:
        code, needs_shift = self._char_to_key(char)
        if code is None:
            logger.debug("Skipping unsupported character", extra={"char": repr(char)})
            return
        if needs_shift:
            self._ui.write(ecodes.EV_KEY, ecodes.KEY_LEFTSHIFT, 1)
        self._ui.write(ecodes.EV_KEY, code, 1)
        self._ui.syn()
        self._ui.write(ecodes.EV_KEY, code, 0)
        if needs_shift:
            self._ui.write(ecodes.EV_KEY, ecodes.KEY_LEFTSHIFT, 0)
        self._ui.syn()

    @staticmethod
    def _button_code(button: str) -> int:
        normalized = (button or "left").lower()
        if normalized == "right":
            return ecodes.BTN_RIGHT
        if normalized == "middle":
            return ecodes.BTN_MIDDLE
        return ecodes.BTN_LEFT

    @staticmethod
    def _keyboard_keys() -> List[int]:
        keys: List[int] = [
            ecodes.BTN_LEFT,
            ecodes.BTN_RIGHT,
            ecodes.BTN_MIDDLE,
            ecodes.KEY_TAB,
            ecodes.KEY_ENTER,
            ecodes.KEY_SPACE,
            ecodes.KEY_LEFTSHIFT,
        ]
        keys.extend([getattr(ecodes, f"KEY_{i}") for i in "ABCDEFGHIJKLMNOPQRSTUVWXYZ"])
        keys.extend([getattr(ecodes, f"KEY_{i}") for i in range(10)])
        keys.extend(
            [
                ecodes.KEY_MINUS,
                ecodes.KEY_EQUAL,
                ecodes.KEY_LEFTBRACE,
                ecodes.KEY_RIGHTBRACE,
                ecodes.KEY_BACKSLASH,
                ecodes.KEY_SEMICOLON,
                ecodes.KEY_APOSTROPHE,
                ecodes.KEY_GRAVE,
                ecodes.KEY_COMMA,
                ecodes.KEY_DOT,
                ecodes.KEY_SLASH,
            ]
        )
        return keys

    @staticmethod
    def _char_to_key(char: str) -> Tuple[Optional[int], bool]:
        """Map an ASCII character to keycode and shift requirement (US layout)."""
        if not char:
            return None, False
        if char.isascii() and char.isalpha():
            return getattr(ecodes, f"KEY_{char.upper()}", None), char.isupper()
        if char.isascii() and char.isdigit():
            return getattr(ecodes, f"KEY_{char}", None), False

        shifted_digits = {"!": "1", "@": "2", "#": "3", "$": "4", "%": "5",
                          "^": "6", "&": "7", "*": "8", "(": "9", ")": "0"}
        if char in shifted_digits:
            return getattr(ecodes, f"KEY_{shifted_digits[char]}"), True

        mapping = {
            " ": (ecodes.KEY_SPACE, False),
            "\n": (ecodes.KEY_ENTER, False),
            "\t": (ecodes.KEY_TAB, False),
            "-": (ecodes.KEY_MINUS, False),
            "_": (ecodes.KEY_MINUS, True),
            "=": (ecodes.KEY_EQUAL, False),
            "+": (ecodes.KEY_EQUAL, True),
            "[": (ecodes.KEY_LEFTBRACE, False),
            "]": (ecodes.KEY_RIGHTBRACE, False),
            "{": (ecodes.KEY_LEFTBRACE, True),
            "}": (ecodes.KEY_RIGHTBRACE, True),
            "\\": (ecodes.KEY_BACKSLASH, False),
            "|": (ecodes.KEY_BACKSLASH, True),
            ";": (ecodes.KEY_SEMICOLON, False),
            ":": (ecodes.KEY_SEMICOLON, True),
            "'": (ecodes.KEY_APOSTROPHE, False),
            '"': (ecodes.KEY_APOSTROPHE, True),
            "`": (ecodes.KEY_GRAVE, False),
            "~": (ecodes.KEY_GRAVE, True),
            ",": (ecodes.KEY_COMMA, False),
            "<": (ecodes.KEY_COMMA, True),
            ".": (ecodes.KEY_DOT, False),
            ">": (ecodes.KEY_DOT, True),
            "/": (ecodes.KEY_SLASH, False),
            "?": (ecodes.KEY_SLASH, True),
        }
        return mapping.get(char, (None, False))
