"""Pronunciation rendering for constructed words.

Two renderings:
- symbolic: IPA-like vowel and consonant symbols wrapped in slashes
- plain: ASCII respelling for terminals without IPA fonts
"""

from conlang.core.types import PronunciationMode


SYMBOLIC_MAP = {
    "a": "æ",
    "e": "ɛ",
    "i": "ɪ",
    "o": "ɔ",
    "u": "ʌ",
    "c": "k",
    "j": "ʤ",
    "q": "kw",
    "x": "ks",
    "y": "j",
}

PLAIN_DIGRAPHS = {
    "th": "th",
    "ch": "ch",
    "sh": "sh",
    "ph": "f",
    "gh": "g",
    "ck": "k",
    "ng": "ng",
    "qu": "kw",
}

PLAIN_SINGLES = {
    "c": "k",
    "x": "ks",
}


def symbolic(word: str) -> str:
    """Map characters to IPA-like symbols; unknown characters pass through."""
    body = "".join(SYMBOLIC_MAP.get(char, char) for char in word.lower())
    return f"/{body}/"


def plain(word: str) -> str:
    """Respell with digraphs consumed as pairs before single characters."""
    text = word.lower()
    out = []
    i = 0
    while i < len(text):
        pair = text[i:i + 2]
        if pair in PLAIN_DIGRAPHS:
            out.append(PLAIN_DIGRAPHS[pair])
            i += 2
            continue
        out.append(PLAIN_SINGLES.get(text[i], text[i]))
        i += 1
    return "".join(out)


def render(word: str, mode: PronunciationMode = PronunciationMode.SYMBOLIC) -> str:
    if mode == PronunciationMode.PLAIN:
        return plain(word)
    return symbolic(word)
