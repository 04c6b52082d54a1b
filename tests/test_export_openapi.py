"""
OpenAPI Export Tests

The schema script writes the app's routes to a JSON document.
"""

import json
import runpy
from pathlib import Path

SCRIPT = Path(__file__).resolve().parents[1] / "scripts" / "export_openapi.py"


def test_export_schema_writes_routes(tmp_path):
    export_schema = runpy.run_path(str(SCRIPT))["export_schema"]
    out = export_schema(tmp_path / "docs" / "openapi.json")
    schema = json.loads(out.read_text(encoding="utf-8"))
    assert "/api/monthly-data" in schema["paths"]
    assert "/api/analytics/summary" in schema["paths"]
