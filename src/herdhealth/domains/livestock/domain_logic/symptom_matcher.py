"""Differential-diagnosis lookup over the disease reference catalog.

The catalog is small and read-only, so both lookups are linear scans. Neither
depends on catalog order: ties in the symptom ranking are broken by disease id.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Mapping, Sequence

from herdhealth.domains.livestock.domain_logic.models import (
    DiseaseMatch,
    DiseaseReference,
    Observation,
)


def _normalize(value: str | None) -> str:
    return (value or "").strip().lower()


def search_diseases(
    catalog: Iterable[DiseaseReference],
    query: str | None = None,
    species: str | None = None,
    *,
    symptom_labels: Mapping[str, str] | None = None,
) -> list[DiseaseReference]:
    """Free-text search by disease name, common names and primary symptoms.

    Args:
        catalog: Disease entries to search.
        query: Case-insensitive substring. Empty or None matches everything.
        species: Optional species filter.
        symptom_labels: Optional symptom id -> display name map, so "diarrhea"
            finds a disease whose primary symptom id is ``scours``.

    Returns:
        Matching entries ordered by disease id.
    """
    needle = _normalize(query)
    wanted_species = _normalize(species)
    labels = symptom_labels or {}

    results = []
    for disease in catalog:
        if wanted_species and wanted_species not in disease.species:
            continue
        if needle:
            haystack = [disease.name, *disease.common_names]
            for symptom in disease.primary_symptoms:
                haystack.append(symptom)
                if symptom in labels:
                    haystack.append(labels[symptom])
            if not any(needle in text.lower() for text in haystack):
                continue
        results.append(disease)

    return sorted(results, key=lambda d: d.id)


def rank_diseases_by_symptoms(
    catalog: Iterable[DiseaseReference],
    symptoms: Iterable[str],
    species: str,
) -> list[DiseaseMatch]:
    """Rank diseases of one species by how many requested symptoms they share.

    Only diseases sharing at least one primary or secondary symptom appear.
    Ordered by match count descending, then disease id ascending.
    """
    wanted = frozenset(_normalize(s) for s in symptoms if _normalize(s))
    wanted_species = _normalize(species)
    if not wanted:
        return []

    matches = []
    for disease in catalog:
        if wanted_species not in disease.species:
            continue
        matched = wanted & disease.all_symptoms
        if matched:
            matches.append(DiseaseMatch(disease=disease, matched_symptoms=matched))

    matches.sort(key=lambda m: (-m.match_count, m.disease.id))
    return matches


def match_diseases_by_symptoms(
    catalog: Iterable[DiseaseReference],
    symptoms: Iterable[str],
    species: str,
) -> list[DiseaseReference]:
    """Diseases ranked by symptom overlap, see :func:`rank_diseases_by_symptoms`."""
    return [m.disease for m in rank_diseases_by_symptoms(catalog, symptoms, species)]


def symptom_frequency(
    history: Sequence[Observation],
    *,
    limit: int = 5,
) -> list[tuple[str, int]]:
    """Most frequent catalog symptoms across the given observations.

    Ties are ordered by symptom id.
    """
    counts: Counter[str] = Counter()
    for obs in history:
        counts.update(_normalize(s) for s in obs.symptoms if _normalize(s))
    ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    return ranked[:limit]
