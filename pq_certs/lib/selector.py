"""Numbered selection of stored entities and files."""

import re
from collections.abc import Callable, Sequence
from typing import TypeVar

from .exceptions import EmptyCandidateSetError, SelectionError
from .models import EntityHandle, EntityKind
from .store import CertStore

T = TypeVar("T")

_DIGITS = re.compile(r"[0-9]+")


def parse_selection(raw: str, count: int) -> int:
    """Validate a 1-based choice against a listing of count entries.

    Args:
        raw: Text typed by the operator
        count: Number of entries shown

    Returns:
        The chosen number (1..count)

    Raises:
        SelectionError: If raw is not a plain non-negative integer or is out of range
    """
    text = raw.strip()
    if not _DIGITS.fullmatch(text):
        raise SelectionError(f"invalid selection: {raw!r}")
    number = int(text)
    if number < 1 or number > count:
        raise SelectionError(f"invalid selection: {number} (choose 1-{count})")
    return number


class Selector:
    """Prompts the operator to pick one candidate from a numbered list."""

    def __init__(
        self,
        read: Callable[[str], str] = input,
        write: Callable[[str], None] = print,
    ) -> None:
        self.read = read
        self.write = write

    def choose(
        self,
        candidates: Sequence[T],
        noun: str,
        describe: Callable[[T], str] = str,
    ) -> T:
        """Show candidates numbered from 1 and return the one picked.

        Raises:
            EmptyCandidateSetError: If candidates is empty (nothing is prompted)
            SelectionError: If the answer is not a listed number
        """
        if not candidates:
            raise EmptyCandidateSetError(f"no {noun}s found")

        self.write(f"Available {noun}s:")
        for number, candidate in enumerate(candidates, start=1):
            self.write(f"{number}) {describe(candidate)}")

        article = "an" if noun[:1].lower() in "aeiou" else "a"
        number = parse_selection(self.read(f"Select {article} {noun} by number: "), len(candidates))
        return candidates[number - 1]

    def choose_entity(self, store: CertStore, kind: EntityKind) -> EntityHandle:
        """Pick one stored intermediate or client."""
        noun = "intermediate CA" if kind is EntityKind.INTERMEDIATE else kind.label
        return self.choose(store.list_entities(kind), noun, describe=lambda h: h.name)
