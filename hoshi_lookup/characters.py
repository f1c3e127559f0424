"""
Character classes used when cutting a lookup window out of page text.

A window runs from the cursor to the first character that cannot be part
of a word: digits, Latin letters, kana, the iteration and prolonged-sound
marks, full and half width forms, CJK radicals and unified ideographs.
The ranges mirror the reader's character counter so that what is counted
as text is also what can be looked up. The counter only counts with them;
cutting the lookup window at the first non-word character is done here.
"""

import regex

WORD_CHARACTER = regex.compile(
    r"[0-9A-Za-z○◯々-〇〻ぁ-ゖゝ-ゞァ-ヺー０-９Ａ-Ｚａ-ｚｦ-ﾝ\p{Radical}\p{Unified_Ideograph}]"
)


def is_word_character(char: str) -> bool:
    """Check if a single character may appear inside a looked-up word."""
    return WORD_CHARACTER.fullmatch(char) is not None


def lookup_window(text: str, offset: int, max_length: int) -> str:
    """
    Cut the longest admissible window starting at offset.

    Args:
        text: Plain chapter text
        offset: Character index of the cursor
        max_length: Longest window to return

    Returns:
        The window, or "" if offset is out of range or points at a
        non-word character
    """
    if offset < 0 or offset >= len(text) or max_length < 1:
        return ""
    end = offset
    limit = min(len(text), offset + max_length)
    while end < limit and is_word_character(text[end]):
        end += 1
    return text[offset:end]
