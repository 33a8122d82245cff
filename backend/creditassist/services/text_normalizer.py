"""
Text Normalizer - cleans raw model output before it is stored or rendered.

Vision models tend to wrap a structured analysis in chat filler ("Certainly!
Here's the summary...", "I'm unable to view..."). Only the structured body is
worth keeping. When nothing usable survives, an empty string is returned and
the caller substitutes its own fallback text.
"""

import re

MIN_USABLE_LENGTH = 50

CODE_FENCE = re.compile(r"```[a-zA-Z0-9_-]*")
INLINE_EMPHASIS = re.compile(r"\*\*")

# Applied repeatedly to the start of the text
LEADING_OPENERS = [
    re.compile(r"^\s*(?:i'?m|i am)\s+(?:so\s+)?sorry\b[^.!?\n]*[.!?]?\s*", re.IGNORECASE),
    re.compile(r"^\s*(?:i\s+)?apologi[sz]e\b[^.!?\n]*[.!?]?\s*", re.IGNORECASE),
    re.compile(r"^\s*(?:certainly|sure|absolutely|of course|great|okay|ok)[,!.]\s*", re.IGNORECASE),
    re.compile(r"^\s*here(?:'s| is| are)\b[^:\n]*[:.]\s*", re.IGNORECASE),
    re.compile(r"^\s*(?:i'?d|i would|i'?ll|i will)\s+be\s+(?:happy|glad)\b[^.!?\n]*[.!?]?\s*", re.IGNORECASE),
    re.compile(r"^\s*as an ai\b[^.!?\n]*[.!?]?\s*", re.IGNORECASE),
    re.compile(r"^\s*(?:i'?ve|i have)\s+(?:reviewed|analy[sz]ed|looked at)\b[^.!?\n]*[.!?]?\s*", re.IGNORECASE),
    re.compile(r"^\s*(?:let me|allow me to)\b[^.!?\n]*[.!?:]?\s*", re.IGNORECASE),
]

DENYLIST = (
    "unable to view",
    "can't view",
    "cannot view",
    "unable to see",
    "would be happy",
    "i can guide",
    "i'm sorry",
    "i am sorry",
    "i apologize",
    "as an ai",
    "i cannot",
    "i can't",
)


def strip_inline_emphasis(text: str) -> str:
    return INLINE_EMPHASIS.sub("", text or "")


def _strip_openers(text: str) -> str:
    changed = True
    while changed:
        changed = False
        for pattern in LEADING_OPENERS:
            stripped = pattern.sub("", text, count=1)
            if stripped != text:
                text = stripped
                changed = True
    return text


def normalize_analysis(raw: str) -> str:
    """
    Return cleaned analysis text, or "" when nothing usable remains
    (fewer than MIN_USABLE_LENGTH characters).
    """
    if not raw:
        return ""

    text = CODE_FENCE.sub("", raw)
    text = _strip_openers(text)

    kept = []
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped:
            continue
        lowered = stripped.lower()
        if any(phrase in lowered for phrase in DENYLIST):
            continue
        kept.append(stripped)

    result = "\n".join(kept).strip()
    if len(result) < MIN_USABLE_LENGTH:
        return ""
    return result
