"""Variable interpolation engine for LookConf configurations."""

from __future__ import annotations

from contextvars import ContextVar
from dataclasses import dataclass
from typing import Any, Optional, Tuple

from .exceptions import InvalidArgumentError, LookupNotFoundError
from .logging import get_logger
from .registry import LookupRegistry

logger = get_logger(__name__)

DEFAULT_PREFIX = "${"
DEFAULT_SUFFIX = "}"
DEFAULT_ESCAPE = "$"
DEFAULT_MAX_DEPTH = 128


@dataclass
class _DepthGuard:
    """Shared by all nested resolutions of one top-level interpolation call."""

    exhausted: bool = False


@dataclass(frozen=True)
class _ResolutionState:
    """Position of the lookup currently being called within the running interpolation."""

    depth: int
    chain: Tuple[str, ...]
    guard: _DepthGuard


# Set while a lookup runs, so that interpolations started by the lookup continue the count
_resolution_state: ContextVar[Optional[_ResolutionState]] = ContextVar("lookconf_resolution_state", default=None)


class Interpolator:
    """Engine for recursive placeholder substitution.

    Placeholders look like ``${token}``. Each token is resolved through a lookup registry, the
    resolved text is interpolated again, and the result replaces the placeholder. Nested
    placeholders such as ``${${inner}}`` are resolved innermost first. An escape in front of the
    prefix (``$${token}``) produces the literal ``${token}`` without asking any lookup. The
    literal is a placeholder again for the next call, so interpolating the output a second time
    resolves it; use ``quote`` to keep text literal across calls.

    Placeholders that cannot be resolved are left in the output exactly as written. The same holds
    for placeholders that refer back to themselves (directly or through other placeholders) and for
    chains deeper than ``max_depth``. Depth and cycle tracking also cover interpolations that a
    lookup starts while it is being called, e.g. the sub-expressions of an expression lookup.

    Interpolation keeps no state on the instance, so one interpolator can serve concurrent callers.
    """

    def __init__(
        self,
        registry: Optional[LookupRegistry] = None,
        prefix: str = DEFAULT_PREFIX,
        suffix: str = DEFAULT_SUFFIX,
        escape: Optional[str] = DEFAULT_ESCAPE,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ):
        """Initialize interpolator.

        Args:
            registry: Lookups used to resolve tokens  # (an empty registry when omitted)
            prefix: Marker opening a placeholder  # (e.g. "${" or "$[")
            suffix: Marker closing a placeholder  # (e.g. "}" or "]")
            escape: Text that, directly before the prefix, makes it literal  # (None disables escaping)
            max_depth: Maximum nesting of recursive resolutions
        """
        if not prefix or not suffix:
            raise InvalidArgumentError("Placeholder prefix and suffix must not be empty!")
        if max_depth < 1:
            raise InvalidArgumentError(f"Maximum depth must be positive, got {max_depth}")

        self.registry = registry if registry is not None else LookupRegistry()
        self.prefix = prefix
        self.suffix = suffix
        self.escape = escape or None
        self.max_depth = max_depth

    def with_markers(self, prefix: str, suffix: str, escape: Optional[str] = DEFAULT_ESCAPE) -> Interpolator:
        """Create an interpolator with other markers sharing this interpolator's registry."""
        return Interpolator(self.registry, prefix, suffix, escape, self.max_depth)

    def has_markers(self, text: Any) -> bool:
        """Check whether a value may contain placeholders."""
        return isinstance(text, str) and self.prefix in text

    def quote(self, text: Any) -> Any:
        """Escape every prefix of a text so that ``substitute`` returns the text unchanged.

        Args:
            text: Literal text  # (non-string values are returned unchanged)

        Raises:
            InvalidArgumentError: If this interpolator has no escape
        """
        if not self.has_markers(text):
            return text
        if self.escape is None:
            raise InvalidArgumentError("Cannot quote placeholders without an escape")
        return text.replace(self.prefix, self.escape + self.prefix)

    def substitute(self, template: Any, key: Optional[str] = None) -> Any:
        """Resolve all placeholders of a template.

        Called from within a lookup, the substitution continues the depth and cycle tracking of
        the interpolation that called the lookup.

        Args:
            template: Text with placeholders  # (non-string values are returned unchanged)
            key: Variable name the template is the value of  # (placeholders referring back to it are cyclic)

        Returns:
            Text with resolved placeholders substituted  # (unresolvable ones left as written)

        Raises:
            InvalidArgumentError: If the template is None
        """
        if template is None:
            raise InvalidArgumentError("Template must not be None!")
        if not self.has_markers(template):
            return template

        origin = (key,) if key else ()
        state = _resolution_state.get()
        if state is None:
            return self._substitute(template, 0, origin, _DepthGuard())
        return self._substitute(template, state.depth, state.chain + origin, state.guard)

    def _substitute(self, text: str, depth: int, chain: Tuple[str, ...], guard: _DepthGuard) -> str:
        """Scan text left to right and replace every unescaped placeholder.

        Args:
            text: Text to process
            depth: Current recursion depth  # (0 for the top-level template)
            chain: Tokens currently being resolved  # (outermost first, for cycle detection)
            guard: Depth guard of the top-level call

        Returns:
            Substituted text
        """
        out = []  # List[str] (output fragments)
        pos = 0
        while True:
            start = text.find(self.prefix, pos)
            if start == -1:
                out.append(text[pos:])
                break

            # Escaped prefix: drop the escape and emit the prefix literally
            if self._is_escaped(text, start, pos):
                out.append(text[pos : start - len(self.escape)])
                out.append(self.prefix)
                pos = start + len(self.prefix)
                continue

            end = self._find_suffix(text, start + len(self.prefix))
            if end == -1:
                # Unterminated prefix is plain text; placeholders after it still count
                out.append(text[pos : start + len(self.prefix)])
                pos = start + len(self.prefix)
                continue

            out.append(text[pos:start])
            span = text[start : end + len(self.suffix)]
            token = text[start + len(self.prefix) : end]
            out.append(self._replace(span, token, depth, chain, guard))
            pos = end + len(self.suffix)

        return "".join(out)

    def _replace(self, span: str, token: str, depth: int, chain: Tuple[str, ...], guard: _DepthGuard) -> str:
        """Compute the replacement for one placeholder.

        Args:
            span: Complete placeholder as written  # (prefix + token + suffix)
            token: Text between the markers  # (may contain nested placeholders)
            depth: Current recursion depth
            chain: Tokens currently being resolved
            guard: Depth guard of the top-level call

        Returns:
            Fully resolved replacement, or the span itself if the token cannot be resolved
        """
        try:
            return self._resolve(token, depth, chain, guard)
        except LookupNotFoundError as e:
            logger.debug("placeholder_unresolved", variable=e.token, reason=e.reason, depth=depth)
            return span
        except RecursionError:
            # Lookups calling back into interpolation use more stack per level than plain values
            guard.exhausted = True
            logger.debug("placeholder_unresolved", variable=token, reason="stack exhausted", depth=depth)
            return span
        finally:
            if depth == 0:
                # Siblings of a runaway top-level placeholder are resolved again
                guard.exhausted = False

    def _resolve(self, token: str, depth: int, chain: Tuple[str, ...], guard: _DepthGuard) -> str:
        """Resolve a token and interpolate the resolved value.

        Raises:
            LookupNotFoundError: If the token cannot be resolved in this branch
        """
        if guard.exhausted:
            raise LookupNotFoundError(token, f"maximum interpolation depth {self.max_depth} exceeded")
        if depth >= self.max_depth:
            # Unwind the whole branch instead of retrying at every level above
            guard.exhausted = True
            raise LookupNotFoundError(token, f"maximum interpolation depth {self.max_depth} exceeded")

        # Innermost first: nested placeholders build the actual variable name
        if self.prefix in token:
            token = self._substitute(token, depth + 1, chain, guard)

        if token in chain:
            raise LookupNotFoundError(token, "cyclic reference " + " -> ".join(chain + (token,)))

        chain = chain + (token,)
        state = _resolution_state.set(_ResolutionState(depth + 1, chain, guard))
        try:
            value = self.registry.resolve(token)
        finally:
            _resolution_state.reset(state)
        if value is None:
            raise LookupNotFoundError(token)

        if self.prefix not in value:
            return value
        return self._substitute(value, depth + 1, chain, guard)

    def _is_escaped(self, text: str, start: int, pos: int) -> bool:
        """Check whether the prefix at ``start`` is preceded by the escape (not before ``pos``)."""
        if self.escape is None:
            return False
        escape_start = start - len(self.escape)
        return escape_start >= pos and text.startswith(self.escape, escape_start)

    def _find_suffix(self, text: str, pos: int) -> int:
        """Find the suffix closing the placeholder whose token starts at ``pos``.

        Nested prefixes must be closed first, so ``${a${b}c}`` closes at the last brace.

        Returns:
            Index of the matching suffix or -1 if the placeholder is unterminated
        """
        level = 1
        token_start = pos
        while pos < len(text):
            if text.startswith(self.prefix, pos):
                if not self._is_escaped(text, pos, token_start):
                    level += 1
                pos += len(self.prefix)
            elif text.startswith(self.suffix, pos):
                level -= 1
                if level == 0:
                    return pos
                pos += len(self.suffix)
            else:
                pos += 1
        return -1
