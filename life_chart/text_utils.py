"""
Text cleanup helpers for narrative output coming back from the LLM.
"""
from __future__ import annotations

import re
import unicodedata

_MD_HEADER_RE = re.compile(r'^\s*#{1,6}\s*', re.MULTILINE)
_MD_BOLD_ASTERISK_RE = re.compile(r'\*\*(.+?)\*\*')
_MD_BOLD_UNDERSCORE_RE = re.compile(r'__(.+?)__')
_MD_ITALIC_ASTERISK_RE = re.compile(r'(?<!\w)\*([^*\n]+?)\*(?!\w)')
_MD_BULLET_RE = re.compile(r'^\s*[-*•]\s+', re.MULTILINE)
_MD_INLINE_CODE_RE = re.compile(r'`([^`]+)`')
_HTML_TAG_RE = re.compile(r'<[^>]+>')
_WHITESPACE_RE = re.compile(r'\s+')
_CJK_SPACE_RE = re.compile(r'([\u4e00-\u9fff])[ \t]+([\u4e00-\u9fff])')

# 单年解读的最大长度
MAX_REASON_LENGTH = 120


def clean_reason_text(text, max_length: int = MAX_REASON_LENGTH) -> str:
    """
    Flatten a per-year reason into a single plain-text line.
    Removes markdown/HTML markup and control characters and caps the length.
    """
    if text is None:
        return ""
    text = str(text)

    text = _HTML_TAG_RE.sub('', text)
    text = _MD_HEADER_RE.sub('', text)
    text = _MD_BOLD_ASTERISK_RE.sub(r'\1', text)
    text = _MD_BOLD_UNDERSCORE_RE.sub(r'\1', text)
    text = _MD_ITALIC_ASTERISK_RE.sub(r'\1', text)
    text = _MD_BULLET_RE.sub('', text)
    text = _MD_INLINE_CODE_RE.sub(r'\1', text)

    # Drop control / zero-width characters
    text = "".join(
        ch for ch in text
        if unicodedata.category(ch) not in ("Cc", "Cf") or ch in ("\n", "\t")
    )
    text = _WHITESPACE_RE.sub(' ', text).strip()
    # Remove unintended spacing between CJK characters
    text = _CJK_SPACE_RE.sub(r'\1\2', text)

    if len(text) > max_length:
        text = text[:max_length].rstrip() + "…"
    return text
