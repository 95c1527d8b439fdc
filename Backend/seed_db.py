"""
Database seeding script for local PostGIS development.

Populates the database with:
  - a handful of demo species with range polygons (icaa)
  - the habitat colormap legend
  - 1,000 random high scores

The real ``icaa`` table comes from the ICAA shapefile import; this script only
creates a compatible one when it is missing.

Usage:
    DATABASE_URL=postgresql://... python seed_db.py
"""

import time

from sqlalchemy import text

from config import Settings
from database import build_engine
from models import APP_TABLES, Base, Species

DEMO_SPECIES = [
    # ogc_fid, common, scientific, class, order, family, genus, category, realm, biome, marine, range WKT
    (1, "Loggerhead Sea Turtle", "Caretta caretta", "REPTILIA", "TESTUDINES", "CHELONIIDAE", "Caretta",
     "VU", "Neotropic", "Marine", "true", "POLYGON((-40 10, -20 10, -20 30, -40 30, -40 10))"),
    (2, "Green Sea Turtle", "Chelonia mydas", "REPTILIA", "TESTUDINES", "CHELONIIDAE", "Chelonia",
     "EN", "Neotropic", "Marine", "true", "POLYGON((-90 -10, -60 -10, -60 15, -90 15, -90 -10))"),
    (3, "Eastern Box Turtle", "Terrapene carolina", "REPTILIA", "TESTUDINES", "EMYDIDAE", "Terrapene",
     "VU", "Nearctic", "Temperate Broadleaf & Mixed Forests", "false",
     "POLYGON((-95 28, -70 28, -70 45, -95 45, -95 28))"),
    (4, "Painted Turtle", "Chrysemys picta", "REPTILIA", "TESTUDINES", "EMYDIDAE", "Chrysemys",
     "LC", "Nearctic", "Temperate Grasslands", "false",
     "POLYGON((-125 30, -65 30, -65 50, -125 50, -125 30))"),
]

HABITAT_COLORMAP = [
    (100, "Forest"),
    (200, "Savanna"),
    (300, "Shrubland"),
    (400, "Grassland"),
    (500, "Wetlands (inland)"),
    (600, "Rocky Areas"),
    (800, "Desert"),
    (900, "Marine - Neritic"),
    (1000, "Marine - Oceanic"),
    (1400, "Artificial - Terrestrial"),
]


def seed():
    """Run all seeding steps sequentially."""
    engine = build_engine(Settings.from_env())

    with engine.connect() as conn:
        # ── Step 0: PostGIS + schema ─────────────────────────────
        print("⏳ Ensuring PostGIS and tables...")
        conn.execute(text("CREATE EXTENSION IF NOT EXISTS postgis"))
        conn.commit()
    Base.metadata.create_all(bind=engine, tables=[Species.__table__, *APP_TABLES])

    with engine.connect() as conn:
        conn.execute(text("ALTER TABLE icaa ADD COLUMN IF NOT EXISTS wkb_geometry geometry(Geometry, 4326)"))
        conn.execute(text(
            "CREATE INDEX IF NOT EXISTS ix_icaa_wkb_geometry ON icaa USING gist (wkb_geometry)"
        ))
        conn.commit()

        # ── Step 1: Species ──────────────────────────────────────
        print(f"⏳ Inserting {len(DEMO_SPECIES)} demo species …")
        start = time.time()
        for (fid, comm, sci, cls, order, family, genus, category, realm, biome, marine, wkt) in DEMO_SPECIES:
            conn.execute(
                text("""
                    INSERT INTO icaa (ogc_fid, comm_name, sci_name, "class", order_, family, genus,
                                      category, realm, biome, marine, wkb_geometry)
                    VALUES (:fid, :comm, :sci, :cls, :order, :family, :genus,
                            :category, :realm, :biome, :marine, ST_GeomFromText(:wkt, 4326))
                    ON CONFLICT (ogc_fid) DO NOTHING
                """),
                {"fid": fid, "comm": comm, "sci": sci, "cls": cls, "order": order, "family": family,
                 "genus": genus, "category": category, "realm": realm, "biome": biome,
                 "marine": marine, "wkt": wkt},
            )
        conn.commit()
        print(f"   ✓ Species inserted in {time.time() - start:.1f}s")

        # ── Step 2: Habitat colormap ─────────────────────────────
        print("⏳ Inserting habitat colormap …")
        for value, label in HABITAT_COLORMAP:
            conn.execute(
                text("INSERT INTO habitat_colormap (value, label) VALUES (:value, :label) "
                     "ON CONFLICT (value) DO NOTHING"),
                {"value": value, "label": label},
            )
        conn.commit()
        print("   ✓ Colormap inserted")

        # ── Step 3: High scores ──────────────────────────────────
        print("⏳ Inserting 1,000 high scores …")
        start = time.time()
        conn.execute(text("""
            INSERT INTO high_scores (id, username, score, created_at)
            SELECT
                gen_random_uuid(),
                'player_' || n,
                floor(random() * 10000)::int,
                NOW() - INTERVAL '1 hour' * floor(random() * 720)
            FROM generate_series(1, 1000) AS n
        """))
        conn.commit()
        print(f"   ✓ High scores inserted in {time.time() - start:.1f}s")

    print("\n🎉 Database seeding complete!")


if __name__ == "__main__":
    seed()
