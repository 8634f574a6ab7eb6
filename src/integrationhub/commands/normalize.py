"""Response normalization.

The gateway wraps the upstream payload in envelopes whose shape varies by
connector and action: sometimes the payload is the top level, sometimes it
sits under ``output``, ``output.body`` or ``body``. Each shape is a named
matcher that returns a payload only when the response structurally fits
it. Matchers run in a fixed priority order and the first non-empty match
wins; when nothing matches the payload is ``{}``.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Tuple

logger = logging.getLogger(__name__)

# Gateway bookkeeping keys, never part of the payload
METADATA_KEYS = frozenset({"status_code", "success", "headers"})

Matcher = Callable[[Any], Optional[Any]]


def _strip_metadata(data: dict) -> dict:
    return {k: v for k, v in data.items() if k not in METADATA_KEYS}


def _non_empty_container(value: Any) -> bool:
    return isinstance(value, (dict, list)) and len(value) > 0


def match_top_level(raw: Any) -> Optional[Any]:
    """Payload is the response itself (a list, or a dict that is not an envelope)."""
    if isinstance(raw, list):
        return raw or None
    if not isinstance(raw, dict) or "output" in raw or "body" in raw:
        return None
    return _strip_metadata(raw) or None


def match_output(raw: Any) -> Optional[Any]:
    """Payload is ``output`` (a list, or a dict without a ``body``)."""
    if not isinstance(raw, dict):
        return None
    output = raw.get("output")
    if isinstance(output, list):
        return output or None
    if not isinstance(output, dict) or "body" in output:
        return None
    return _strip_metadata(output) or None


def match_output_body(raw: Any) -> Optional[Any]:
    """Payload is ``output.body``."""
    if not isinstance(raw, dict) or not isinstance(raw.get("output"), dict):
        return None
    body = raw["output"].get("body")
    return body if _non_empty_container(body) else None


def match_body(raw: Any) -> Optional[Any]:
    """Payload is the top-level ``body``."""
    if not isinstance(raw, dict):
        return None
    body = raw.get("body")
    return body if _non_empty_container(body) else None


SHAPE_MATCHERS: List[Tuple[str, Matcher]] = [
    ("top_level", match_top_level),
    ("output", match_output),
    ("output.body", match_output_body),
    ("body", match_body),
]


def match_shape(raw: Any) -> Tuple[Optional[str], Any]:
    """Run the matchers in priority order.

    Returns:
        (matcher name, payload), or (None, {}) when no shape matches
    """
    for name, matcher in SHAPE_MATCHERS:
        payload = matcher(raw)
        if payload is not None:
            return name, payload
    return None, {}


def normalize_response(raw: Any) -> Any:
    """Extract the upstream payload from a gateway response."""
    name, payload = match_shape(raw)
    if name is None:
        logger.debug("No response shape matched; normalized to empty payload")
    else:
        logger.debug(f"Response normalized via '{name}' shape")
    return payload


# =============================================================================
# Embedded errors
# =============================================================================


@dataclass(frozen=True)
class EmbeddedError:
    """An upstream failure wrapped inside a 2xx gateway response."""

    message: str
    status_code: Optional[int] = None

    @property
    def is_auth_failure(self) -> bool:
        return self.status_code in (401, 403)


def _error_message(container: dict) -> Optional[str]:
    for source in (container.get("body"), container):
        if not isinstance(source, dict):
            continue
        error = source.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str) and error:
            return error
        if isinstance(source.get("message"), str) and source["message"]:
            return source["message"]
    return None


def detect_embedded_error(raw: Any) -> Optional[EmbeddedError]:
    """Find an in-body error in an otherwise successful response.

    Checks for ``status_code >= 400`` at the top level and under ``output``,
    then for an explicit ``success: false``.
    """
    if not isinstance(raw, dict):
        return None

    for container in (raw, raw.get("output")):
        if not isinstance(container, dict):
            continue
        code = container.get("status_code")
        if isinstance(code, int) and not isinstance(code, bool) and code >= 400:
            message = _error_message(container) or f"HTTP {code} error"
            return EmbeddedError(message=message, status_code=code)

    if raw.get("success") is False:
        return EmbeddedError(message=_error_message(raw) or "Unknown gateway error")
    return None
