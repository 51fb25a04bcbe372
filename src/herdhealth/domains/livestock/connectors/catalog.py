"""Disease reference catalog: reads the seeded YAML definitions from disk.

The catalog is loaded once and shared read-only between callers; every entry is
a frozen dataclass and every collection is a tuple or frozenset.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from pathlib import Path
from typing import Any

import yaml

from herdhealth.domains.livestock.domain_logic.models import (
    DiseaseMatch,
    DiseaseReference,
    SymptomDefinition,
)
from herdhealth.domains.livestock.domain_logic.symptom_matcher import (
    match_diseases_by_symptoms,
    rank_diseases_by_symptoms,
    search_diseases,
)

logger = logging.getLogger(__name__)

DEFAULT_CATALOG_PATH = Path(__file__).resolve().parent.parent / "catalog" / "reference.yaml"


class CatalogError(Exception):
    """Raised when a catalog file is missing or malformed."""


class DiseaseCatalog:
    """Immutable, in-memory disease and symptom reference.

    Usage::

        catalog = load_catalog()
        catalog.search("pneumonia", species="cattle")
        catalog.match_by_symptoms(["fever", "coughing"], species="cattle")
    """

    def __init__(
        self,
        diseases: Iterable[DiseaseReference],
        symptoms: Iterable[SymptomDefinition] = (),
    ) -> None:
        self._diseases = tuple(sorted(diseases, key=lambda d: d.id))
        self._symptoms = tuple(symptoms)
        ids = [d.id for d in self._diseases]
        if len(ids) != len(set(ids)):
            raise CatalogError("Duplicate disease id in catalog")
        self._by_id = {d.id: d for d in self._diseases}
        self._labels = {s.id: s.name for s in self._symptoms}

    def __iter__(self) -> Iterator[DiseaseReference]:
        return iter(self._diseases)

    def __len__(self) -> int:
        return len(self._diseases)

    @property
    def diseases(self) -> tuple[DiseaseReference, ...]:
        return self._diseases

    @property
    def symptoms(self) -> tuple[SymptomDefinition, ...]:
        return self._symptoms

    @property
    def symptom_labels(self) -> dict[str, str]:
        return dict(self._labels)

    def get(self, disease_id: str) -> DiseaseReference | None:
        return self._by_id.get(disease_id)

    def search(self, query: str | None = None, species: str | None = None) -> list[DiseaseReference]:
        return search_diseases(self._diseases, query, species, symptom_labels=self._labels)

    def match_by_symptoms(self, symptoms: Iterable[str], species: str) -> list[DiseaseReference]:
        return match_diseases_by_symptoms(self._diseases, symptoms, species)

    def rank_by_symptoms(self, symptoms: Iterable[str], species: str) -> list[DiseaseMatch]:
        return rank_diseases_by_symptoms(self._diseases, symptoms, species)


def _strings(values: Any) -> tuple[str, ...]:
    return tuple(str(v).strip() for v in (values or []) if str(v).strip())


def _ids(values: Any) -> frozenset[str]:
    return frozenset(v.lower() for v in _strings(values))


def parse_disease(data: dict[str, Any]) -> DiseaseReference:
    """Build a DiseaseReference from one YAML mapping."""
    try:
        disease_id = data["id"]
        name = data["name"]
    except KeyError as exc:
        raise CatalogError(f"Disease entry missing required key {exc}") from exc

    species = _ids(data.get("species"))
    primary = _ids(data.get("primary_symptoms"))
    if not species:
        raise CatalogError(f"Disease {disease_id!r} lists no species")
    if not primary:
        raise CatalogError(f"Disease {disease_id!r} lists no primary symptoms")

    return DiseaseReference(
        id=disease_id,
        name=name,
        species=species,
        primary_symptoms=primary,
        secondary_symptoms=_ids(data.get("secondary_symptoms")),
        common_names=_strings(data.get("common_names")),
        category=data.get("category", "other"),
        severity=int(data.get("severity", 1)),
        contagious=bool(data.get("contagious", False)),
        zoonotic=bool(data.get("zoonotic", False)),
        causes=_strings(data.get("causes")),
        risk_factors=_strings(data.get("risk_factors")),
        treatment_options=_strings(data.get("treatment_options")),
        prevention_methods=_strings(data.get("prevention_methods")),
        when_to_call_vet=_strings(data.get("when_to_call_vet")),
        seasonal_pattern=data.get("seasonal_pattern"),
        educational_notes=(data.get("educational_notes") or "").strip(),
    )


def load_catalog(path: str | Path | None = None) -> DiseaseCatalog:
    """Parse a catalog YAML file into a DiseaseCatalog.

    Args:
        path: Catalog file. Defaults to the bundled ``catalog/reference.yaml``.

    Raises:
        CatalogError: If the file is missing or an entry is malformed.
    """
    catalog_path = Path(path).expanduser() if path else DEFAULT_CATALOG_PATH
    if not catalog_path.is_file():
        raise CatalogError(f"Catalog file does not exist: {catalog_path}")

    with open(catalog_path, encoding="utf-8") as f:
        data: dict[str, Any] = yaml.safe_load(f) or {}

    symptoms = [
        SymptomDefinition(
            id=str(s["id"]).lower(),
            name=s.get("name", s["id"]),
            category=s.get("category", "other"),
        )
        for s in data.get("symptoms", [])
    ]
    diseases = [parse_disease(d) for d in data.get("diseases", [])]

    known = {s.id for s in symptoms}
    if known:
        for disease in diseases:
            unknown = disease.all_symptoms - known
            if unknown:
                logger.warning(
                    "Disease %s references symptoms missing from the symptom list: %s",
                    disease.id,
                    sorted(unknown),
                )

    catalog = DiseaseCatalog(diseases, symptoms)
    logger.info("Loaded %d diseases and %d symptoms from %s", len(catalog), len(symptoms), catalog_path)
    return catalog
