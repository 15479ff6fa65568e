import os

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("SEED_DEMO_DATA", "false")
os.environ.setdefault("PV_RECOMPUTE_DEBOUNCE_SECONDS", "0.5")
os.environ.setdefault("RATE_LIMIT_REQUESTS", "100000")
