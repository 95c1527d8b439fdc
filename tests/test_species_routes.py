"""Tests for the non-spatial species endpoints (SQLite-backed)."""

import pytest

from species_routes import FALLBACK_NAMES


class TestByIds:
    """Test /api/species/by-ids."""

    def test_get_ordered_by_id(self, client, species):
        response = client.get("/api/species/by-ids", params={"ids": "3,1,42"})

        assert response.status_code == 200
        records = response.json()["species"]
        assert [r["ogc_fid"] for r in records] == [1, 3]
        assert records[0]["class"] == "REPTILIA"
        assert records[0]["order_"] == "TESTUDINES"
        assert "wkb_geometry" not in records[0]

    def test_post(self, client, species):
        response = client.post("/api/species/by-ids", json={"ids": [2]})

        assert [r["comm_name"] for r in response.json()["species"]] == ["Eastern Box Turtle"]

    def test_missing_ids_param(self, client, species):
        response = client.get("/api/species/by-ids")

        assert response.status_code == 400
        assert response.json() == {"error": "Missing ids parameter"}

    def test_unparseable_ids(self, client, species):
        response = client.get("/api/species/by-ids", params={"ids": "a,b"})

        assert response.json() == {"species": []}

    def test_post_empty(self, client, species):
        assert client.post("/api/species/by-ids", json={}).json() == {"species": []}


class TestBioregions:
    """Test /api/species/bioregions."""

    def test_get(self, client, species):
        response = client.get("/api/species/bioregions", params={"ids": "1"})

        assert response.json() == {
            "bioregions": [
                {
                    "species_id": 1,
                    "bioregion": "Sargasso Sea",
                    "realm": "Neotropic",
                    "subrealm": "Atlantic",
                    "biome": "Marine",
                }
            ]
        }

    @pytest.mark.parametrize(
        "body",
        [
            pytest.param({"species_ids": [1, 2]}, id="species_ids"),
            pytest.param({"ids": [1, 2]}, id="ids"),
        ],
    )
    def test_post(self, client, species, body):
        response = client.post("/api/species/bioregions", json=body)

        ids = sorted(b["species_id"] for b in response.json()["bioregions"])
        assert ids == [1, 2]

    def test_missing_ids(self, client, species):
        response = client.get("/api/species/bioregions")

        assert response.status_code == 400

    def test_post_empty(self, client, species):
        assert client.post("/api/species/bioregions", json={}).json() == {"bioregions": []}


class TestCatalogAndQuery:
    """Test /api/species and /api/species/catalog."""

    def test_catalog_ordered_by_common_name(self, client, species):
        data = client.get("/api/species/catalog").json()

        assert data["count"] == 3
        assert [s["comm_name"] for s in data["species"]] == [
            "American Bullfrog",
            "Eastern Box Turtle",
            "Loggerhead Sea Turtle",
        ]

    def test_by_id(self, client, species):
        data = client.get("/api/species", params={"id": 3}).json()

        assert data["species"]["sci_name"] == "Lithobates catesbeianus"

    def test_by_id_not_found(self, client, species):
        response = client.get("/api/species", params={"id": 99})

        assert response.status_code == 404
        assert response.json() == {"error": "Species not found"}

    def test_by_id_invalid(self, client, species):
        response = client.get("/api/species", params={"id": "abc"})

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid species ID"}

    def test_search_is_case_insensitive(self, client, species):
        data = client.get("/api/species", params={"search": "TURTLE"}).json()

        assert data["count"] == 2
        assert data["query"] == "TURTLE"

    def test_search_scientific_name(self, client, species):
        data = client.get("/api/species", params={"search": "caretta"}).json()

        assert [s["ogc_fid"] for s in data["species"]] == [1]

    def test_realm(self, client, species):
        data = client.get("/api/species", params={"realm": "Nearctic"}).json()

        assert sorted(s["ogc_fid"] for s in data["species"]) == [2, 3]

    def test_status_filters_and_normalizes(self, client, species):
        data = client.get("/api/species", params={"status": "lc, XX"}).json()

        assert data["statuses"] == ["LC"]
        assert [s["ogc_fid"] for s in data["species"]] == [3]

    def test_status_all_invalid(self, client, species):
        response = client.get("/api/species", params={"status": "XX,YY"})

        assert response.status_code == 400
        assert response.json()["error"].startswith("Invalid status")

    def test_no_params_returns_catalog(self, client, species):
        assert client.get("/api/species").json()["count"] == 3


class TestRandomNames:
    """Test /api/species/random-names."""

    def test_excludes_answer(self, client, species):
        names = client.get("/api/species/random-names", params={"count": 2, "exclude": 1}).json()["names"]

        assert len(names) == 2
        assert "Loggerhead Sea Turtle" not in names

    def test_pads_with_fallbacks(self, client, species):
        names = client.get("/api/species/random-names", params={"count": 6}).json()["names"]

        assert len(names) == 6
        assert len(set(names)) == 6
        assert any(name in FALLBACK_NAMES for name in names)


def test_habitat_colormap(client, species):
    response = client.get("/api/habitat/colormap")

    assert response.json() == [
        {"value": 100, "label": "Forest"},
        {"value": 200, "label": "Savanna"},
    ]
