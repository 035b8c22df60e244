"""Index-based selection of server files and batch execution over them.

Users pick files by their 1-based position in the listing printed by
``duplo list``. Bad picks (not a number, no such index, picked twice) are
reported and skipped; they never stop the rest of the batch. A failing
per-file operation, on the other hand, stops the batch at once.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional, Sequence, Set

from .client import FileDescriptor
from .errors import InputError


logger = logging.getLogger("duplo.selection")


INVALID = "invalid"
OUT_OF_RANGE = "out_of_range"
DUPLICATE = "duplicate"

_ORDINAL_RE = re.compile(r"[+-]?[0-9]+")


@dataclass(frozen=True)
class SelectionWarning:
    """A token that was skipped during resolution."""
    token: str
    reason: str
    message: str


@dataclass
class Resolution:
    names: List[str] = field(default_factory=list)
    warnings: List[SelectionWarning] = field(default_factory=list)


WarnCallback = Callable[[SelectionWarning], None]


def parse_ordinal(token: str) -> Optional[int]:
    """Parse a base-10 integer, returning None when token is not one."""
    if not _ORDINAL_RE.fullmatch(token):
        return None
    return int(token)


def resolve_with_warnings(
    tokens: Iterable[str],
    listing: Sequence[FileDescriptor],
    warn: Optional[WarnCallback] = None,
) -> Resolution:
    """Map ordinal tokens to file names against a single listing snapshot.

    Names come back in the order their ordinals first appear in tokens.
    Duplicates are detected by ordinal, so two listing entries sharing a
    name can both be selected.
    """
    result = Resolution()
    seen: Set[int] = set()

    def skip(token: str, reason: str, message: str) -> None:
        warning = SelectionWarning(token, reason, message)
        result.warnings.append(warning)
        logger.info(f"Skipped {token!r}: {message}")
        if warn is not None:
            warn(warning)

    for token in tokens:
        number = parse_ordinal(token)
        if number is None:
            skip(token, INVALID, f"Invalid number {token}")
            continue
        if number < 1 or number > len(listing):
            skip(token, OUT_OF_RANGE, f"No file with index {number}")
            continue
        if number in seen:
            skip(token, DUPLICATE, f"Already processed {number}")
            continue
        seen.add(number)
        result.names.append(listing[number - 1].name)

    return result


def resolve(
    tokens: Iterable[str],
    listing: Sequence[FileDescriptor],
    warn: Optional[WarnCallback] = None,
) -> List[str]:
    """Like resolve_with_warnings, returning only the resolved names."""
    return resolve_with_warnings(tokens, listing, warn).names


def run_batch(names: Iterable[str], op: Callable[[str], None]) -> None:
    """Apply op to each name in order; the first exception aborts the batch."""
    for name in names:
        logger.debug(f"Processing {name}")
        op(name)


def run_indexed(
    tokens: Sequence[str],
    fetch_listing: Callable[[], Sequence[FileDescriptor]],
    op: Callable[[str], None],
    warn: Optional[WarnCallback] = None,
) -> List[str]:
    """Run a whole batch command: validate, fetch once, resolve, apply.

    Returns the names op was applied to.
    """
    if not tokens:
        raise InputError("No files specified")

    listing = fetch_listing()
    logger.info(f"Listing has {len(listing)} file(s)")

    names = resolve(tokens, listing, warn)
    run_batch(names, op)
    return names
