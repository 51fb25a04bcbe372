"""Tests for disease search and symptom matching."""

from __future__ import annotations

from conftest import make_observation
from herdhealth.domains.livestock.domain_logic.models import DiseaseReference
from herdhealth.domains.livestock.domain_logic.symptom_matcher import (
    match_diseases_by_symptoms,
    rank_diseases_by_symptoms,
    search_diseases,
    symptom_frequency,
)


def _disease(disease_id, species=("cattle",), primary=("fever",), secondary=(), **kwargs):
    return DiseaseReference(
        id=disease_id,
        name=kwargs.pop("name", disease_id.replace("_", " ").title()),
        species=frozenset(species),
        primary_symptoms=frozenset(primary),
        secondary_symptoms=frozenset(secondary),
        **kwargs,
    )


class TestRankBySymptoms:
    def test_empty_symptom_list_matches_nothing(self):
        catalog = [_disease("a")]
        assert match_diseases_by_symptoms(catalog, [], "cattle") == []
        assert match_diseases_by_symptoms(catalog, ["  "], "cattle") == []

    def test_species_filter(self):
        catalog = [_disease("bovine"), _disease("ovine", species=("sheep",))]
        assert [d.id for d in match_diseases_by_symptoms(catalog, ["fever"], "sheep")] == ["ovine"]

    def test_no_shared_symptom_excluded(self):
        catalog = [_disease("a", primary=("lameness",))]
        assert match_diseases_by_symptoms(catalog, ["fever"], "cattle") == []

    def test_secondary_symptoms_count(self):
        catalog = [_disease("a", primary=("lameness",), secondary=("fever",))]
        ranked = rank_diseases_by_symptoms(catalog, ["fever"], "cattle")
        assert ranked[0].match_count == 1
        assert ranked[0].primary_match_count == 0

    def test_ordered_by_match_count(self):
        catalog = [
            _disease("one", primary=("fever",)),
            _disease("two", primary=("fever", "coughing")),
        ]
        ranked = rank_diseases_by_symptoms(catalog, ["fever", "coughing"], "cattle")
        assert [m.disease.id for m in ranked] == ["two", "one"]
        assert ranked[0].matched_symptoms == frozenset({"fever", "coughing"})

    def test_ties_broken_by_id_regardless_of_catalog_order(self):
        forward = [_disease("b"), _disease("a"), _disease("c")]
        backward = list(reversed(forward))
        expected = ["a", "b", "c"]
        assert [d.id for d in match_diseases_by_symptoms(forward, ["fever"], "cattle")] == expected
        assert [d.id for d in match_diseases_by_symptoms(backward, ["fever"], "cattle")] == expected

    def test_input_is_case_insensitive(self):
        catalog = [_disease("a")]
        assert len(match_diseases_by_symptoms(catalog, ["FEVER "], "Cattle")) == 1

    def test_against_bundled_catalog(self, catalog):
        ranked = catalog.rank_by_symptoms(["fever", "coughing"], "cattle")
        assert ranked[0].disease.id == "pneumonia_cattle"
        assert ranked[0].match_count == 2
        assert [m.disease.id for m in ranked[1:]] == ["bvd_cattle", "enterotoxemia", "foot_rot"]


class TestSearch:
    def test_blank_query_returns_everything(self):
        catalog = [_disease("b"), _disease("a")]
        assert [d.id for d in search_diseases(catalog)] == ["a", "b"]

    def test_matches_name_and_common_names(self):
        catalog = [
            _disease("pinkeye", name="Infectious Keratoconjunctivitis", common_names=("Pinkeye",)),
            _disease("other", name="Something Else"),
        ]
        assert [d.id for d in search_diseases(catalog, "PINK")] == ["pinkeye"]
        assert [d.id for d in search_diseases(catalog, "kerato")] == ["pinkeye"]

    def test_matches_primary_symptom_ids(self):
        catalog = [_disease("a", primary=("bloat",)), _disease("b")]
        assert [d.id for d in search_diseases(catalog, "bloat")] == ["a"]

    def test_species_filter(self, catalog):
        results = catalog.search(species="swine")
        assert [d.id for d in results] == ["erysipelas_swine", "ringworm", "swine_influenza"]

    def test_symptom_labels_reach_diseases(self, catalog):
        results = catalog.search("diarrhea")
        assert [d.id for d in results] == ["bvd_cattle", "coccidiosis_cattle", "enterotoxemia"]

    def test_no_match(self, catalog):
        assert catalog.search("zebra stripes") == []


class TestSymptomFrequency:
    def test_counts_and_orders(self):
        history = [
            make_observation(symptoms=["fever", "coughing"]),
            make_observation(symptoms=["coughing"]),
            make_observation(symptoms=["Coughing", "lethargy"]),
        ]
        assert symptom_frequency(history) == [("coughing", 3), ("fever", 1), ("lethargy", 1)]

    def test_limit(self):
        history = [make_observation(symptoms=["a", "b", "c"])]
        assert len(symptom_frequency(history, limit=2)) == 2

    def test_custom_symptoms_not_counted(self):
        history = [make_observation(custom_symptoms=["head pressing"])]
        assert symptom_frequency(history) == []
