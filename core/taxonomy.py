"""
In-process eBird species catalog used by species search.

The catalog is loaded once per process. Concurrent callers during the first
load share one in-flight task; a failed load is not remembered, so the next
caller tries again.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, List, Optional

log = logging.getLogger(__name__)

SEARCHABLE_CATEGORIES = ("species", "issf")


@dataclass(frozen=True)
class SpeciesEntry:
    species_code: str
    common_name: str
    scientific_name: str
    category: Optional[str] = None
    family_common_name: Optional[str] = None

    @property
    def common_lower(self) -> str:
        return self.common_name.lower()

    @property
    def scientific_lower(self) -> str:
        return self.scientific_name.lower()

    def to_json(self) -> Dict:
        return {
            "speciesCode": self.species_code,
            "comName": self.common_name,
            "sciName": self.scientific_name,
            "category": self.category,
            "familyComName": self.family_common_name,
        }


def build_entries(taxonomy: List[Dict]) -> List[SpeciesEntry]:
    entries = []
    for item in taxonomy:
        if (item.get("category") or "") not in SEARCHABLE_CATEGORIES:
            continue
        if not item.get("speciesCode") or not item.get("comName"):
            continue
        entries.append(
            SpeciesEntry(
                species_code=item["speciesCode"],
                common_name=item["comName"],
                scientific_name=item.get("sciName") or "",
                category=item.get("category"),
                family_common_name=item.get("familyComName"),
            )
        )
    return entries


def _score(entry: SpeciesEntry, tokens: List[str]) -> Optional[int]:
    """Lower is better; None means at least one token did not match."""
    score = 0
    for token in tokens:
        com_index = entry.common_lower.find(token)
        sci_index = entry.scientific_lower.find(token)
        if com_index == -1 and sci_index == -1:
            return None
        if com_index != -1:
            score += com_index
            if entry.common_lower.startswith(token) or f" {token}" in entry.common_lower:
                score -= 15
        else:
            score += sci_index + 50
    if entry.category and entry.category != "species":
        score += 20
    return score


def rank_species(entries: List[SpeciesEntry], query: str, max_results: int = 5) -> List[SpeciesEntry]:
    tokens = [t for t in (query or "").lower().split() if t]
    if not tokens:
        ordered = sorted(entries, key=lambda e: e.common_lower)
        return ordered[:max_results]

    scored = []
    for entry in entries:
        score = _score(entry, tokens)
        if score is not None:
            scored.append((score, entry.common_lower, entry))
    scored.sort(key=lambda s: (s[0], s[1]))

    desired = min(max(max_results, 15), 40)
    return [entry for _, _, entry in scored[:desired]]


class SpeciesCatalog:
    def __init__(self, loader: Callable[[], Awaitable[List[Dict]]]):
        self._loader = loader
        self._entries: Optional[List[SpeciesEntry]] = None
        self._inflight: Optional[asyncio.Task] = None

    @property
    def loaded(self) -> bool:
        return self._entries is not None

    async def _load(self) -> List[SpeciesEntry]:
        taxonomy = await self._loader()
        entries = build_entries(taxonomy)
        if not entries:
            raise ValueError("The eBird species catalog returned no results")
        log.info("Species catalog loaded", extra={"entries": len(entries)})
        return entries

    async def entries(self) -> List[SpeciesEntry]:
        if self._entries is not None:
            return self._entries

        if self._inflight is None:
            self._inflight = asyncio.ensure_future(self._load())
        task = self._inflight
        try:
            # shield: one caller being cancelled must not cancel the shared load
            entries = await asyncio.shield(task)
        finally:
            if task.done() and self._inflight is task:
                self._inflight = None
        self._entries = entries
        return entries

    async def search(self, query: str, max_results: int = 5) -> List[SpeciesEntry]:
        return rank_species(await self.entries(), query, max_results)


__all__ = ["SpeciesCatalog", "SpeciesEntry", "build_entries", "rank_species"]
