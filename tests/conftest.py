import os
import tempfile

# Settings are read at import time; point them at a scratch database before cafemod loads.
os.environ.setdefault("DB_PATH", os.path.join(tempfile.mkdtemp(), "cafemod.db"))
os.environ.setdefault("CRON_SECRET", "test-secret")
