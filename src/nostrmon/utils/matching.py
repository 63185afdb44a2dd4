"""Regular-expression matching of event content.

Patterns are user-supplied text, matched case-sensitively and unanchored
with ``re.search``. Compiled patterns are cached.

Matching fails closed: a pattern that does not compile is logged and never
matches, so a bad value that slipped past
[validate_pattern()][nostrmon.utils.matching.validate_pattern] cannot crash
the event handler. An empty pattern matches every note, as ``re.search``
does.
"""

from __future__ import annotations

import functools
import logging
import re

from nostrmon.core.exceptions import InvalidPatternError


logger = logging.getLogger("utils.matching")

_CACHE_SIZE = 64


@functools.lru_cache(maxsize=_CACHE_SIZE)
def _compile(pattern: str) -> re.Pattern[str]:
    return re.compile(pattern)


def validate_pattern(pattern: str) -> None:
    """Raise ``InvalidPatternError`` if *pattern* does not compile."""
    try:
        _compile(pattern)
    except re.error as e:
        raise InvalidPatternError(pattern, str(e)) from e


def matches(pattern: str, content: str) -> bool:
    """Return whether *pattern* occurs anywhere in *content*.

    Never raises. Returns ``False`` for an invalid pattern.
    """
    try:
        compiled = _compile(pattern)
    except re.error as e:
        logger.warning("pattern_compile_failed pattern=%r error=%s", pattern, e)
        return False
    return compiled.search(content) is not None
