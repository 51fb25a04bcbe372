"""MCP tools for the disease reference catalog.

Read-only lookups: free-text search and symptom-based differential ranking.
Results are educational and never replace a veterinarian.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

from fastmcp import Context, FastMCP

from herdhealth.domains.livestock.connectors import wire

if TYPE_CHECKING:
    from herdhealth.domains.livestock.connectors.catalog import DiseaseCatalog

logger = logging.getLogger(__name__)

DISCLAIMER = (
    "Reference information only. Contact a veterinarian for diagnosis and treatment."
)


def register_disease_reference_tools(mcp: FastMCP, catalog: DiseaseCatalog) -> None:
    """Register disease catalog tools on the MCP server."""

    @mcp.tool
    async def search_diseases(ctx: Context, query: str = "", species: str = "") -> str:
        """Search the disease reference by name, common name or primary symptom.

        Args:
            query: Case-insensitive text to look for. Empty matches every disease.
            species: Optional species filter (cattle, sheep, goat, swine, poultry).
        """
        results = catalog.search(query or None, species or None)
        return json.dumps({
            "count": len(results),
            "diseases": [wire.to_wire(d) for d in results],
            "disclaimer": DISCLAIMER,
        })

    @mcp.tool
    async def match_diseases_by_symptoms(
        ctx: Context,
        symptoms: list[str],
        species: str,
    ) -> str:
        """Rank diseases of a species by how many of the given symptoms they share.

        Args:
            symptoms: Symptom ids, e.g. ["fever", "coughing"].
            species: The animal's species.
        """
        matches = catalog.rank_by_symptoms(symptoms, species)
        logger.debug("Symptom match for %s %s: %d diseases", species, symptoms, len(matches))
        return json.dumps({
            "species": species,
            "symptoms": symptoms,
            "count": len(matches),
            "matches": [wire.disease_match_to_wire(m) for m in matches],
            "disclaimer": DISCLAIMER,
        })

    @mcp.tool
    async def get_disease(ctx: Context, disease_id: str) -> str:
        """Full reference entry for one disease.

        Args:
            disease_id: Catalog id, e.g. "pneumonia_cattle".
        """
        disease = catalog.get(disease_id)
        if disease is None:
            return json.dumps({
                "status": "not_found",
                "diseaseId": disease_id,
                "message": "No disease with that id in the reference catalog.",
            })
        return json.dumps({"disease": wire.to_wire(disease), "disclaimer": DISCLAIMER})

    @mcp.tool
    async def list_symptoms(ctx: Context) -> str:
        """The predefined symptom list used when recording observations."""
        return json.dumps({"symptoms": [wire.to_wire(s) for s in catalog.symptoms]})
