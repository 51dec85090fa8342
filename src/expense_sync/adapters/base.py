"""Source adapter protocol."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Iterator

    from expense_sync.models import RawEmail


@runtime_checkable
class SourceAdapter(Protocol):
    """Protocol for transaction email sources."""

    account: str

    def fetch_unprocessed(self, processed_ids: set[str]) -> Iterator[RawEmail]: ...
