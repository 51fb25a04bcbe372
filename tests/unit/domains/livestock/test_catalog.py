"""Tests for loading the disease reference catalog."""

from __future__ import annotations

import pytest

from herdhealth.domains.livestock.connectors.catalog import (
    CatalogError,
    DiseaseCatalog,
    load_catalog,
    parse_disease,
)


class TestBundledCatalog:
    def test_loads_all_entries(self, catalog):
        assert len(catalog) == 13
        assert len(catalog.symptoms) == 17

    def test_entries_are_sorted_by_id(self, catalog):
        ids = [d.id for d in catalog]
        assert ids == sorted(ids)

    def test_every_disease_symptom_is_defined(self, catalog):
        known = {s.id for s in catalog.symptoms}
        for disease in catalog:
            assert disease.all_symptoms <= known, disease.id

    def test_get(self, catalog):
        disease = catalog.get("pneumonia_cattle")
        assert disease is not None
        assert "cattle" in disease.species
        assert "Shipping Fever" in disease.common_names
        assert catalog.get("unicorn_pox") is None

    def test_symptom_labels(self, catalog):
        assert catalog.symptom_labels["scours"] == "Scours/Diarrhea"


class TestParseDisease:
    def test_normalizes_ids(self):
        disease = parse_disease({
            "id": "x",
            "name": "X",
            "species": ["Cattle"],
            "primary_symptoms": ["Fever"],
        })
        assert disease.species == frozenset({"cattle"})
        assert disease.primary_symptoms == frozenset({"fever"})
        assert disease.secondary_symptoms == frozenset()

    def test_missing_name(self):
        with pytest.raises(CatalogError, match="name"):
            parse_disease({"id": "x", "species": ["cattle"], "primary_symptoms": ["fever"]})

    def test_missing_species(self):
        with pytest.raises(CatalogError, match="species"):
            parse_disease({"id": "x", "name": "X", "primary_symptoms": ["fever"]})

    def test_missing_primary_symptoms(self):
        with pytest.raises(CatalogError, match="primary"):
            parse_disease({"id": "x", "name": "X", "species": ["cattle"]})


class TestLoadCatalog:
    def test_missing_file(self, tmp_path):
        with pytest.raises(CatalogError, match="does not exist"):
            load_catalog(tmp_path / "nope.yaml")

    def test_custom_file(self, tmp_path):
        path = tmp_path / "custom.yaml"
        path.write_text(
            "symptoms:\n"
            "  - {id: fever, name: Fever}\n"
            "diseases:\n"
            "  - id: test_fever\n"
            "    name: Test Fever\n"
            "    species: [goat]\n"
            "    primary_symptoms: [fever]\n",
            encoding="utf-8",
        )
        catalog = load_catalog(path)
        assert [d.id for d in catalog] == ["test_fever"]
        assert catalog.match_by_symptoms(["fever"], "goat")[0].id == "test_fever"

    def test_malformed_entry(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("diseases:\n  - id: broken\n    name: Broken\n", encoding="utf-8")
        with pytest.raises(CatalogError):
            load_catalog(path)

    def test_duplicate_ids_rejected(self):
        entry = parse_disease({
            "id": "x", "name": "X", "species": ["cattle"], "primary_symptoms": ["fever"],
        })
        with pytest.raises(CatalogError, match="Duplicate"):
            DiseaseCatalog([entry, entry])
