# scripts/setup/init_db.py
"""
Initialize database — creates all tables, optionally seeds a demo venue.
Run once before first launch, or after adding new models.
Usage: python scripts/setup/init_db.py [--seed-demo]
"""

import argparse
import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

from crowdnav.database import create_tables, engine
from crowdnav.config import settings
from crowdnav.services.domain import Coordinate, Zone
from crowdnav.services.zone_store import SqlZoneStore
from sqlalchemy import inspect, text


def _square(lat, lng, size=0.001):
    return (
        Coordinate(lat, lng),
        Coordinate(lat, lng + size),
        Coordinate(lat + size, lng + size),
        Coordinate(lat + size, lng),
    )


# 2×2 grid of gates/halls, adjacent along the grid edges
DEMO_ZONES = [
    Zone(id="zone-gate-a", name="Gate A", boundary=_square(34.0500, -118.2450), capacity=200,
         adjacent_zone_ids=("zone-hall-1", "zone-gate-b")),
    Zone(id="zone-gate-b", name="Gate B", boundary=_square(34.0500, -118.2440), capacity=150,
         adjacent_zone_ids=("zone-gate-a", "zone-hall-2")),
    Zone(id="zone-hall-1", name="Main Hall", boundary=_square(34.0510, -118.2450), capacity=500,
         adjacent_zone_ids=("zone-gate-a", "zone-hall-2")),
    Zone(id="zone-hall-2", name="Food Court", boundary=_square(34.0510, -118.2440), capacity=300,
         adjacent_zone_ids=("zone-gate-b", "zone-hall-1")),
]


def main():
    parser = argparse.ArgumentParser(description="Create CrowdNav tables")
    parser.add_argument("--seed-demo", action="store_true", help="Insert a 4-zone demo venue")
    args = parser.parse_args()

    print("🗄️  CrowdNav DB Initialization")
    print("=" * 40)
    print(f"📡 Database: {settings.DATABASE_URL}")

    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        print("✅ Database connection OK")
    except Exception as e:
        print(f"❌ Cannot connect to database: {e}")
        print("\nMake sure PostgreSQL is running, or set DATABASE_URL=sqlite:///./crowdnav.db")
        sys.exit(1)

    print("\n📋 Creating tables...")
    create_tables()
    tables = sorted(inspect(engine).get_table_names())
    print(f"✅ Tables ready ({len(tables)} total):")
    for t in tables:
        print(f"   ✓ {t}")

    if args.seed_demo:
        store = SqlZoneStore()
        for zone in DEMO_ZONES:
            store.upsert_zone(zone)
            print(f"   + {zone.id} ({zone.name}, capacity {zone.capacity})")
        print(f"🌱 Seeded {len(DEMO_ZONES)} demo zones")

    print("\n🎉 Database ready! You can now start the backend:")
    print("   uvicorn crowdnav.main:app --host 0.0.0.0 --port 8080 --reload")


if __name__ == "__main__":
    main()
