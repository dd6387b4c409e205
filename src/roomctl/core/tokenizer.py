"""Chat command tokenizer."""

from __future__ import annotations

import re

_QUOTE_TABLE = str.maketrans(
    {
        "\u2018": "'",
        "\u2019": "'",
        "\u201c": '"',
        "\u201d": '"',
    }
)
_LINE_SEPARATORS = re.compile(r"\r\n|\r|\u2028|\u2029|\u0085|\x0b")
_WORD = re.compile(r'[^\s"]+|"[^"]*"')
_QUOTED = re.compile(r'^"(.+)"$', re.DOTALL)


def normalize_quotes(text: str) -> str:
    """Straighten smart quotes and collapse alternate line separators to ``\\n``.

    Chat clients substitute typographic quotes and their own line breaks,
    which would otherwise defeat argument grouping and line splitting.
    """
    return _LINE_SEPARATORS.sub("\n", text.translate(_QUOTE_TABLE))


def wordify(text: str | None) -> list[str]:
    """Split *text* on whitespace, keeping double-quoted spans as one word.

    Exactly one layer of surrounding double quotes is removed from a quoted
    word. Embedded quotes cannot be escaped. Empty input yields ``[]``.
    """
    if not text:
        return []
    words = _WORD.findall(normalize_quotes(str(text)))
    return [_QUOTED.sub(r"\1", word) for word in words]


def split_commands(payload: str | None) -> list[str]:
    """Split a chat payload into one command string per non-empty line."""
    if not payload:
        return []
    lines = normalize_quotes(str(payload)).split("\n")
    return [line.strip() for line in lines if line.strip()]
