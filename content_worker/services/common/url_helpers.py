"""
URL validation and domain extraction for evidence sources.
"""

import re
from typing import Optional
from urllib.parse import urlparse

_URL_PATTERN = re.compile(r"^https?://[^\s/$.?#].[^\s]*$", re.IGNORECASE)
_MARKDOWN_LINK = re.compile(r"\[([^\]]+)\]\((https?://[^)\s]+)\)")
_BARE_URL = re.compile(r"https?://[^\s)\]>\"']+")


def is_valid_url(url: str) -> bool:
    if not url or not isinstance(url, str):
        return False
    return bool(_URL_PATTERN.match(url.strip()))


def extract_domain(url: str) -> Optional[str]:
    """
    Extract the host of a URL without a leading "www.".

    Returns None for anything that is not an http(s) URL.
    """
    if not is_valid_url(url):
        return None
    try:
        domain = urlparse(url.strip()).netloc.lower()
    except ValueError:
        return None
    domain = domain.split("@")[-1].split(":")[0]
    if domain.startswith("www."):
        domain = domain[4:]
    return domain or None


def find_url(text: str) -> tuple[Optional[str], Optional[str]]:
    """
    Find the first link in free text.

    Markdown links win over bare URLs. Returns (label, url); label is None
    for bare URLs and both are None when the text has no link.
    """
    if not text:
        return None, None
    match = _MARKDOWN_LINK.search(text)
    if match:
        return match.group(1).strip(), match.group(2)
    match = _BARE_URL.search(text)
    if match:
        return None, match.group(0).rstrip(".,;")
    return None, None
