import os
import tempfile

# app.main creates its data directories on import; keep them out of /app/data.
os.environ.setdefault("ORDER_EXPORTER_DATA_DIR", tempfile.mkdtemp(prefix="order_exporter_tests_"))
