"""
Species lookup routes: PostGIS spatial queries plus catalog reads.

Endpoints:
  GET      /api/species/at-point     — Species whose range contains a point
  GET      /api/species/in-radius    — Species whose range is within N meters
  GET      /api/species/closest      — Nearest species range to a point
  GET/POST /api/species/bioregions   — Bioregion columns for species ids
  GET/POST /api/species/by-ids       — Full records for species ids
  GET      /api/species/catalog      — Catalog listing
  GET      /api/species              — Lookup by id / search / realm / status
  GET      /api/species/random-names — Decoy names for the guessing game
  GET      /api/habitat/colormap     — Habitat raster legend
"""

import json
import logging
import math
import random
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import or_, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from cache import CATALOG_KEY, ResponseCache, get_cache
from config import Settings, get_settings
from database import get_db
from models import HabitatColormap, Species
from schemas import (
    BioregionEntry,
    BioregionResponse,
    ClosestSpecies,
    ClosestSpeciesResponse,
    ColormapEntry,
    RandomNamesResponse,
    SpeciesIdsBody,
    SpeciesListResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/species", tags=["Species"])
habitat_router = APIRouter(prefix="/api/habitat", tags=["Habitat"])

DEFAULT_RADIUS_METERS = 10_000
MIN_RADIUS_METERS = 1
MAX_RADIUS_METERS = 500_000

IUCN_STATUSES = ["CR", "EN", "VU", "NT", "LC", "DD", "EX", "EW"]
SEARCH_LIMIT = 20

FALLBACK_NAMES = [
    "Loggerhead Sea Turtle",
    "Hawksbill Sea Turtle",
    "Leatherback Sea Turtle",
    "Olive Ridley Sea Turtle",
    "Eastern Box Turtle",
    "Painted Turtle",
]

# Full record, snake_case keys as stored (no geometry).
SPECIES_COLUMNS = [
    Species.ogc_fid,
    Species.comm_name,
    Species.sci_name,
    Species.tax_comm,
    Species.http_iucn,
    Species.kingdom,
    Species.phylum,
    Species.class_.label("class"),
    Species.order.label("order_"),
    Species.family,
    Species.genus,
    Species.category,
    Species.cons_code,
    Species.cons_text,
    Species.threats,
    Species.hab_desc,
    Species.hab_tags,
    Species.marine,
    Species.terrestria,
    Species.freshwater,
    Species.aquatic,
    Species.geo_desc,
    Species.dist_comm,
    Species.island,
    Species.origin,
    Species.bioregio_1,
    Species.realm,
    Species.sub_realm,
    Species.biome,
    Species.color_prim,
    Species.color_sec,
    Species.pattern,
    Species.shape_desc,
    Species.size_min,
    Species.size_max,
    Species.weight_kg,
    Species.diet_type,
    Species.diet_prey,
    Species.diet_flora,
    Species.behav_1,
    Species.behav_2,
    Species.lifespan,
    Species.maturity,
    Species.repro_type,
    Species.clutch_sz,
    Species.life_desc1,
    Species.life_desc2,
    Species.key_fact1,
    Species.key_fact2,
    Species.key_fact3,
]

# Minimal columns for list rendering.
CATALOG_COLUMNS = [
    Species.ogc_fid,
    Species.comm_name,
    Species.sci_name,
    Species.order.label("order_"),
    Species.family,
    Species.genus,
    Species.kingdom,
    Species.phylum,
    Species.class_.label("class"),
    Species.realm,
    Species.biome,
    Species.bioregio_1,
    Species.category,
    Species.marine,
    Species.terrestria,
    Species.freshwater,
    Species.aquatic,
]

# Columns returned by the point / radius queries.
SPATIAL_SELECT = """
    SELECT
        ogc_fid,
        comm_name,
        sci_name,
        category,
        realm,
        biome,
        order_,
        family,
        genus,
        diet_type,
        color_prim,
        hab_desc,
        key_fact1,
        key_fact2,
        key_fact3,
        ST_AsGeoJSON(wkb_geometry)::text AS wkb_geometry
    FROM icaa
"""

AT_POINT_SQL = text(
    SPATIAL_SELECT
    + """
    WHERE wkb_geometry IS NOT NULL
      AND ST_Contains(wkb_geometry, ST_SetSRID(ST_MakePoint(:lon, :lat), 4326))
    """
)

IN_RADIUS_SQL = text(
    SPATIAL_SELECT
    + """
    WHERE wkb_geometry IS NOT NULL
      AND ST_DWithin(
          wkb_geometry::geography,
          ST_SetSRID(ST_MakePoint(:lon, :lat), 4326)::geography,
          :radius
      )
    """
)

CLOSEST_SQL = text(
    """
    SELECT
        ogc_fid,
        comm_name,
        sci_name,
        ST_AsGeoJSON(wkb_geometry)::text AS wkb_geometry,
        ST_Distance(
            wkb_geometry::geography,
            ST_SetSRID(ST_MakePoint(:lon, :lat), 4326)::geography
        ) AS distance_meters
    FROM icaa
    WHERE wkb_geometry IS NOT NULL
    ORDER BY wkb_geometry::geography <-> ST_SetSRID(ST_MakePoint(:lon, :lat), 4326)::geography
    LIMIT 1
    """
)


# ── Parameter helpers ────────────────────────────────────────────

def point_params(
    lon: Optional[float] = Query(None, description="Longitude, WGS84 degrees"),
    lat: Optional[float] = Query(None, description="Latitude, WGS84 degrees"),
) -> tuple[float, float]:
    """Validate the lon/lat query pair shared by every spatial endpoint."""
    if lon is None or lat is None or not math.isfinite(lon) or not math.isfinite(lat):
        raise HTTPException(status_code=400, detail="Missing or invalid lon/lat parameters")
    if not (-180 <= lon <= 180 and -90 <= lat <= 90):
        raise HTTPException(status_code=400, detail="lon/lat out of range")
    return lon, lat


def clamp_radius(radius: Optional[float]) -> float:
    """Missing/zero/NaN -> default; otherwise bounded to [1, 500000] meters."""
    if radius is None or math.isnan(radius) or radius == 0:
        return DEFAULT_RADIUS_METERS
    return min(max(radius, MIN_RADIUS_METERS), MAX_RADIUS_METERS)


def parse_ids(raw: str) -> list[int]:
    """``"1, 2,x,3"`` -> ``[1, 2, 3]``; unparseable entries are dropped."""
    ids = []
    for part in raw.split(","):
        part = part.strip()
        try:
            ids.append(int(part))
        except ValueError:
            continue
    return ids


def meters_to_km(meters: float) -> int:
    """Whole kilometres, rounded half up."""
    return int(math.floor(max(meters, 0) / 1000 + 0.5))


def _with_geojson(row) -> dict:
    record = dict(row)
    geometry = record.get("wkb_geometry")
    record["wkb_geometry"] = json.loads(geometry) if geometry else None
    return record


# ── 1. Spatial lookups ───────────────────────────────────────────

@router.get("/at-point", response_model=SpeciesListResponse)
def species_at_point(point: tuple[float, float] = Depends(point_params), db: Session = Depends(get_db)):
    """Species whose habitat polygon contains the point (``ST_Contains``)."""
    lon, lat = point
    try:
        rows = db.execute(AT_POINT_SQL, {"lon": lon, "lat": lat}).mappings().all()
    except SQLAlchemyError as exc:
        logger.error("species_at_point failed: %s", exc)
        raise HTTPException(status_code=500, detail="Failed to query species at point")

    species = [_with_geojson(r) for r in rows]
    return SpeciesListResponse(species=species, count=len(species))


@router.get("/in-radius", response_model=SpeciesListResponse)
def species_in_radius(
    point: tuple[float, float] = Depends(point_params),
    radius: Optional[float] = Query(None, description="Search radius in meters (max 500000)"),
    db: Session = Depends(get_db),
):
    """Species whose habitat lies within ``radius`` meters of the point (``ST_DWithin``)."""
    lon, lat = point
    effective_radius = clamp_radius(radius)
    try:
        rows = db.execute(
            IN_RADIUS_SQL, {"lon": lon, "lat": lat, "radius": effective_radius}
        ).mappings().all()
    except SQLAlchemyError as exc:
        logger.error("species_in_radius failed: %s", exc)
        raise HTTPException(status_code=500, detail="Failed to query species in radius")

    species = [_with_geojson(r) for r in rows]
    return SpeciesListResponse(species=species, count=len(species))


@router.get("/closest", response_model=ClosestSpeciesResponse)
def closest_species(point: tuple[float, float] = Depends(point_params), db: Session = Depends(get_db)):
    """Nearest species range to the point, no distance limit (``<->`` KNN)."""
    lon, lat = point
    try:
        row = db.execute(CLOSEST_SQL, {"lon": lon, "lat": lat}).mappings().first()
    except SQLAlchemyError as exc:
        logger.error("closest_species failed: %s", exc)
        raise HTTPException(status_code=500, detail="Failed to find closest species")

    if row is None:
        return ClosestSpeciesResponse(species=None, geometry=None)

    geometry = row["wkb_geometry"]
    return ClosestSpeciesResponse(
        species=ClosestSpecies(
            ogc_fid=row["ogc_fid"],
            comm_name=row["comm_name"],
            sci_name=row["sci_name"],
            distance_km=meters_to_km(float(row["distance_meters"] or 0)),
        ),
        geometry=json.loads(geometry) if geometry else None,
    )


# ── 2. Batch lookups by id ───────────────────────────────────────

def _bioregions_for(db: Session, ids: list[int]) -> list[BioregionEntry]:
    rows = db.execute(
        select(
            Species.ogc_fid,
            Species.bioregio_1,
            Species.realm,
            Species.sub_realm,
            Species.biome,
        ).where(Species.ogc_fid.in_(ids))
    ).all()
    return [
        BioregionEntry(species_id=r[0], bioregion=r[1], realm=r[2], subrealm=r[3], biome=r[4])
        for r in rows
    ]


def _species_by_ids(db: Session, ids: list[int]) -> list[dict]:
    rows = db.execute(
        select(*SPECIES_COLUMNS).where(Species.ogc_fid.in_(ids)).order_by(Species.ogc_fid)
    ).mappings().all()
    return [dict(r) for r in rows]


@router.get("/bioregions", response_model=BioregionResponse)
def get_bioregions(ids: Optional[str] = Query(None), db: Session = Depends(get_db)):
    """Bioregion data for ``?ids=1,2,3``."""
    if not ids:
        raise HTTPException(status_code=400, detail="Missing ids parameter")
    species_ids = parse_ids(ids)
    if not species_ids:
        return BioregionResponse(bioregions=[])
    try:
        return BioregionResponse(bioregions=_bioregions_for(db, species_ids))
    except SQLAlchemyError as exc:
        logger.error("get_bioregions failed: %s", exc)
        raise HTTPException(status_code=500, detail="Failed to fetch species bioregions")


@router.post("/bioregions", response_model=BioregionResponse)
def post_bioregions(payload: SpeciesIdsBody, db: Session = Depends(get_db)):
    species_ids = payload.resolved()
    if not species_ids:
        return BioregionResponse(bioregions=[])
    try:
        return BioregionResponse(bioregions=_bioregions_for(db, species_ids))
    except SQLAlchemyError as exc:
        logger.error("post_bioregions failed: %s", exc)
        raise HTTPException(status_code=500, detail="Failed to fetch species bioregions")


@router.get("/by-ids")
def get_species_by_ids(ids: Optional[str] = Query(None), db: Session = Depends(get_db)):
    """Batch fetch species records for ``?ids=1,2,3`` ordered by id."""
    if not ids:
        raise HTTPException(status_code=400, detail="Missing ids parameter")
    species_ids = parse_ids(ids)
    if not species_ids:
        return {"species": []}
    try:
        return {"species": _species_by_ids(db, species_ids)}
    except SQLAlchemyError as exc:
        logger.error("get_species_by_ids failed: %s", exc)
        raise HTTPException(status_code=500, detail="Failed to fetch species")


@router.post("/by-ids")
def post_species_by_ids(payload: SpeciesIdsBody, db: Session = Depends(get_db)):
    if not payload.ids:
        return {"species": []}
    try:
        return {"species": _species_by_ids(db, payload.ids)}
    except SQLAlchemyError as exc:
        logger.error("post_species_by_ids failed: %s", exc)
        raise HTTPException(status_code=500, detail="Failed to fetch species")


# ── 3. Catalog / search ──────────────────────────────────────────

@router.get("/catalog", response_model=SpeciesListResponse)
def get_catalog(
    db: Session = Depends(get_db),
    cache: ResponseCache = Depends(get_cache),
    settings: Settings = Depends(get_settings),
):
    """All species, minimal columns, ordered by common name."""
    cached = cache.get(CATALOG_KEY)
    if cached:
        return SpeciesListResponse(**cached)

    try:
        rows = db.execute(select(*CATALOG_COLUMNS).order_by(Species.comm_name)).mappings().all()
    except SQLAlchemyError as exc:
        logger.error("get_catalog failed: %s", exc)
        raise HTTPException(status_code=500, detail="Failed to fetch species catalog")

    response = SpeciesListResponse(species=[dict(r) for r in rows], count=len(rows))
    cache.set(CATALOG_KEY, response.model_dump(), settings.catalog_cache_ttl)
    return response


@router.get("")
def query_species(
    species_id: Optional[str] = Query(None, alias="id"),
    search: Optional[str] = Query(None),
    realm: Optional[str] = Query(None),
    status: Optional[str] = Query(None, description="Comma-separated IUCN codes, e.g. CR,EN"),
    db: Session = Depends(get_db),
):
    """
    Single entry point the species browser uses.

    The first present parameter wins: id, then search, then realm, then
    status. With none of them the catalog is returned.
    """
    try:
        if species_id:
            try:
                wanted = int(species_id)
            except ValueError:
                raise HTTPException(status_code=400, detail="Invalid species ID")
            row = db.execute(
                select(*SPECIES_COLUMNS).where(Species.ogc_fid == wanted).limit(1)
            ).mappings().first()
            if row is None:
                raise HTTPException(status_code=404, detail="Species not found")
            return {"species": dict(row)}

        if search:
            term = f"%{search}%"
            rows = db.execute(
                select(
                    Species.ogc_fid,
                    Species.comm_name,
                    Species.sci_name,
                    Species.category,
                    Species.realm,
                )
                .where(or_(Species.comm_name.ilike(term), Species.sci_name.ilike(term)))
                .order_by(Species.comm_name)
                .limit(SEARCH_LIMIT)
            ).mappings().all()
            return {"species": [dict(r) for r in rows], "count": len(rows), "query": search}

        if realm:
            rows = db.execute(
                select(*SPECIES_COLUMNS).where(Species.realm == realm).order_by(Species.comm_name)
            ).mappings().all()
            return {"species": [dict(r) for r in rows], "count": len(rows), "realm": realm}

        if status:
            requested = [s.strip().upper() for s in status.split(",")]
            statuses = [s for s in requested if s in IUCN_STATUSES]
            if not statuses:
                raise HTTPException(
                    status_code=400,
                    detail=f"Invalid status. Valid values: {', '.join(IUCN_STATUSES)}",
                )
            rows = db.execute(
                select(*SPECIES_COLUMNS)
                .where(Species.category.in_(statuses))
                .order_by(Species.comm_name)
            ).mappings().all()
            return {"species": [dict(r) for r in rows], "count": len(rows), "statuses": statuses}

        rows = db.execute(select(*CATALOG_COLUMNS).order_by(Species.comm_name)).mappings().all()
        return {"species": [dict(r) for r in rows], "count": len(rows)}

    except HTTPException:
        raise
    except SQLAlchemyError as exc:
        logger.error("query_species failed: %s", exc)
        raise HTTPException(status_code=500, detail="Failed to fetch species data")


@router.get("/random-names", response_model=RandomNamesResponse)
def random_names(
    count: int = Query(15, ge=1, le=200),
    exclude: Optional[int] = Query(None, description="Species id to leave out (the answer)"),
    db: Session = Depends(get_db),
):
    """Shuffled species names used as wrong answers in the guessing game."""
    stmt = select(Species.comm_name, Species.sci_name)
    if exclude is not None:
        stmt = stmt.where(Species.ogc_fid != exclude)
    try:
        rows = db.execute(stmt).all()
    except SQLAlchemyError as exc:
        logger.error("random_names failed: %s", exc)
        raise HTTPException(status_code=500, detail="Failed to fetch random species names")

    names = [comm or sci for comm, sci in rows if comm or sci]
    random.shuffle(names)
    names = names[:count]

    for fallback in FALLBACK_NAMES:
        if len(names) >= count:
            break
        if fallback not in names:
            names.append(fallback)

    return RandomNamesResponse(names=names)


# ── 4. Habitat legend ────────────────────────────────────────────

@habitat_router.get("/colormap", response_model=list[ColormapEntry])
def habitat_colormap(db: Session = Depends(get_db)):
    """Habitat code -> label mapping for the raster legend."""
    try:
        rows = db.execute(select(HabitatColormap).order_by(HabitatColormap.value)).scalars().all()
    except SQLAlchemyError as exc:
        logger.error("habitat_colormap failed: %s", exc)
        raise HTTPException(status_code=500, detail="Failed to fetch habitat colormap")
    return [ColormapEntry.model_validate(r) for r in rows]
