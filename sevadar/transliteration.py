"""
Latin-to-Devanagari transliteration of names and designations via Google
Input Tools.
"""

from __future__ import annotations

import logging
import re

import requests

logger = logging.getLogger(__name__)

INPUT_TOOLS_URL = "https://www.google.com/inputtools/request"
HINDI_INPUT_METHOD = "hi-t-i0-und"
REQUEST_TIMEOUT = 10  # seconds

_LATIN = re.compile(r"[a-zA-Z]")


def needs_transliteration(text: str) -> bool:
    return bool(text) and bool(_LATIN.search(text))


def transliterate(text: str, timeout: float = REQUEST_TIMEOUT) -> str:
    """
    Returns the Hindi rendering of `text`. Text without Latin letters, an
    unexpected response or a failed request leaves the input unchanged.
    """
    if not needs_transliteration(text):
        return text
    params = {
        "text": text,
        "itc": HINDI_INPUT_METHOD,
        "num": 1,
        "cp": 0,
        "cs": 1,
        "ie": "utf-8",
        "oe": "utf-8",
    }
    try:
        response = requests.get(INPUT_TOOLS_URL, params=params, timeout=timeout)
        response.raise_for_status()
        data = response.json()
    except (requests.RequestException, ValueError) as e:
        logger.warning("Transliteration failed for %r: %s", text, e)
        return text

    try:
        if data[0] == "SUCCESS" and data[1][0][1][0]:
            return data[1][0][1][0]
    except (IndexError, KeyError, TypeError):
        pass
    logger.warning("Unexpected transliteration response for %r", text)
    return text
