"""Fixed-width word wrapping for plain-text Finger responses."""

from collections import deque


def _split_word(word: str, max_width: int, first_width: int) -> list[str]:
    """Hard-break a word into pieces.

    The first piece is at most ``first_width`` characters, the following ones
    at most ``max_width``.
    """
    pieces = [word[:first_width]]
    rest = word[first_width:]
    while rest:
        pieces.append(rest[:max_width])
        rest = rest[max_width:]
    return pieces


def _wrap_line(line: str, max_width: int) -> list[str]:
    """Wrap a single line (no newlines) to ``max_width`` columns."""
    if len(line) <= max_width:
        return [line]

    lines: list[str] = []
    words = deque(line.split(" "))
    current = ""

    while words:
        word = words.popleft()

        if not current:
            if len(word) > max_width:
                pieces = _split_word(word, max_width, max_width)
                lines.extend(pieces[:-1])
                current = pieces[-1]
            else:
                current = word
            continue

        candidate = f"{current} {word}"
        if len(candidate) <= max_width:
            current = candidate
        elif len(word) > max_width:
            room = max_width - len(current) - 1
            if room <= 0:
                lines.append(current)
                current = ""
                words.appendleft(word)
                continue
            head, *tail = _split_word(word, max_width, room)
            lines.append(f"{current} {head}")
            current = ""
            words.extendleft(reversed(tail))
        else:
            lines.append(current)
            current = word

    if current:
        lines.append(current)

    return lines


def wrapped(text: str, max_width: int) -> str:
    """Word-wrap text to a fixed column width.

    Each ``\\n``-separated line is wrapped on its own so blank lines between
    paragraphs survive. Words longer than ``max_width`` are hard-broken.

    Args:
        text: Text to wrap
        max_width: Maximum line length (must be >= 1)

    Returns:
        Wrapped text with surrounding whitespace stripped
    """
    if max_width < 1:
        raise ValueError("max_width must be at least 1")

    lines: list[str] = []
    for line in text.split("\n"):
        lines.extend(_wrap_line(line, max_width))
    return "\n".join(lines).strip()
