"""Word lookup service.

Turns a search term into a normalized word record:
- No term: a random record (404 when the table is empty)
- Term equal to a head word: that record as-is
- Term found among another record's synonyms: the record is swapped so the
  term becomes the head word and the original head word leads the synonyms
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from app.adapters.storage.base import AbstractWordRepository, WordRecord
from app.core.errors import NotFoundAppError
from app.schemas.synonyms import SynonymData
from app.utils.text_normalizer import normalize_term, normalize_terms

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LookupResult:
    """Normalized record plus where the term matched."""

    data: SynonymData
    found_in: str


def _normalize_record(record: WordRecord) -> SynonymData:
    return SynonymData(
        id=record.id,
        word=normalize_term(record.word),
        synonyms=normalize_terms(record.synonyms),
        antonyms=normalize_terms(record.antonyms),
    )


def swap_to_synonym(data: SynonymData, term: str) -> SynonymData:
    """Make ``term`` the head word of a record that lists it as a synonym.

    The term is removed from the synonyms and the original head word is put
    at the front of the list unless it is already there.

    Args:
        data: Normalized record whose synonyms contain ``term``.
        term: Normalized search term.

    Returns:
        A new record; ``data`` is left untouched.
    """
    original_word = data.word
    synonyms = [s for s in data.synonyms if s != term]
    if original_word not in synonyms:
        synonyms.insert(0, original_word)
    return data.model_copy(update={"word": term, "synonyms": synonyms})


class SynonymService:
    """Lookup logic on top of a word repository."""

    def __init__(self, repository: AbstractWordRepository) -> None:
        self._repository = repository

    async def lookup(self, term: str, *, searched: str | None = None) -> LookupResult:
        """Resolve a normalized term (or "" for a random pick).

        Args:
            term: Normalized search term.
            searched: Term as the caller sent it, echoed back on a miss.

        Raises:
            NotFoundAppError: If nothing matches or the table is empty.
            BackendAppError: If the repository fails.
        """
        if not term:
            return await self._random()

        record = await self._repository.find_by_word(term)
        if record is not None:
            return LookupResult(data=_normalize_record(record), found_in="word")

        record = await self._repository.find_by_synonym(term)
        if record is not None:
            data = _normalize_record(record)
            if term != data.word and term in data.synonyms:
                return LookupResult(data=swap_to_synonym(data, term), found_in="synonyms")
            return LookupResult(data=data, found_in="word")

        logger.info("lookup.not_found", extra={"term": term})
        raise NotFoundAppError(
            code="No result found",
            message=f'Search: "{searched or term}" → No result in word or synonyms.',
            details={"searched": searched or term},
        )

    async def _random(self) -> LookupResult:
        record = await self._repository.pick_random()
        if record is None:
            raise NotFoundAppError(
                code="No data in database",
                message="No words in the database.",
                details={"searched": "random"},
            )
        return LookupResult(data=_normalize_record(record), found_in="word")
