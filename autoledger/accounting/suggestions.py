"""
Suggestion Service

Ranks the accounts used by past documents of the same kind whose line
label contains a fragment. Advisory only; never writes.

Infrastructure errors from the store propagate unchanged.
"""

from collections import Counter

import structlog

from autoledger.models.ledger import AccountSuggestion, DocumentKind
from autoledger.services.storage.interface import LedgerStorageInterface


logger = structlog.get_logger(__name__)

DEFAULT_SUGGESTION_LIMIT = 5


class SuggestionService:

    def __init__(
        self,
        storage: LedgerStorageInterface,
        limit: int = DEFAULT_SUGGESTION_LIMIT,
    ):
        self.storage = storage
        self.limit = limit

    async def suggest(
        self,
        kind: DocumentKind,
        label_fragment: str,
        limit: int = 0,
    ) -> list[AccountSuggestion]:
        """
        Most frequent (account, label) pairs, most frequent first.

        Matching is a case-insensitive substring test on the stored line
        label. The fragment is used as typed, so an empty one matches
        every line of the kind.
        """
        fragment = (label_fragment or "").lower()

        lines = await self.storage.list_lines_for_kind(kind)
        counts = Counter(
            (line.account_code, line.label)
            for line in lines
            if fragment in line.label.lower()
        )

        # most_common keeps first-seen order among equal counts
        suggestions = [
            AccountSuggestion(account_code=account, sample_label=label, frequency=count)
            for (account, label), count in counts.most_common(limit or self.limit)
        ]
        logger.debug(
            "Suggestions computed",
            kind=kind.value,
            fragment=fragment,
            candidates=len(counts),
            returned=len(suggestions),
        )
        return suggestions
