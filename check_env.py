#!/usr/bin/env python3
"""Check the .env file for routing and Supabase settings, creating a template if missing."""

from pathlib import Path
import os

TEMPLATE = """# AMap routing (leave empty to always use straight-line fallback routes)
SHIPTRACK_AMAP_KEY=

# Supabase (leave empty to keep orders in memory)
SHIPTRACK_SUPABASE_URL=https://your-project-id.supabase.co
SHIPTRACK_SUPABASE_KEY=your-service-role-key-here

# API
SHIPTRACK_API_PREFIX=/api
# Comma-separated or JSON array: http://localhost:5173,http://127.0.0.1:5173
# SHIPTRACK_FRONTEND_ALLOWED_ORIGINS=

# Simulation: delivery seconds per wall-clock second
SHIPTRACK_SPEED_FACTOR=900
"""

SECRET_KEYS = ("SHIPTRACK_SUPABASE_KEY", "SHIPTRACK_AMAP_KEY")


def _mask(line: str) -> str:
    name, _, value = line.partition("=")
    value = value.strip()
    if name.strip() in SECRET_KEYS and len(value) > 12:
        return f"{name}={value[:6]}...{value[-4:]}"
    return line


def main():
    project_root = Path(__file__).parent
    env_file = project_root / ".env"

    print("=" * 60)
    print("ShipTrack Environment Checker")
    print("=" * 60)
    print()

    if not env_file.exists():
        env_file.write_text(TEMPLATE, encoding="utf-8")
        print(f"❌ .env file NOT found; created a template at: {env_file}")
        print("⚠️  Edit it and add your AMap key and Supabase credentials.")
        return

    print(f"✅ Found .env file at: {env_file}")
    print("-" * 60)
    for line in env_file.read_text(encoding="utf-8").splitlines():
        print(_mask(line))
    print("-" * 60)
    print()

    for name in ("SHIPTRACK_AMAP_KEY", "SHIPTRACK_SUPABASE_URL", "SHIPTRACK_SUPABASE_KEY"):
        status = "set in environment" if os.getenv(name) else "not in environment (read from .env)"
        print(f"{name}: {status}")
    print()

    try:
        from shiptrack.config import settings
    except Exception as e:
        print(f"❌ Error loading config: {e}")
        print("Install the project first: pip install -e .")
        return

    if settings.amap_key:
        print("✅ AMap routing is configured")
    else:
        print("⚠️  No AMap key: every route will use the straight-line fallback")

    if settings.supabase_url and settings.supabase_key:
        print("✅ Supabase is configured; orders are persisted")
    else:
        print("⚠️  Supabase is NOT configured; orders live in memory and are lost on restart")


if __name__ == "__main__":
    main()
