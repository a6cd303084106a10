import json
from pathlib import Path

from stockdesk.main import app


def test_openapi_paths_snapshot():
    snapshot_path = Path(__file__).parent / "snapshots" / "openapi_paths_snapshot.json"
    expected_paths = json.loads(snapshot_path.read_text(encoding="utf-8"))
    actual_paths = sorted(app.openapi()["paths"].keys())
    assert actual_paths == expected_paths


def test_adjust_endpoint_documents_rejection_envelope():
    operation = app.openapi()["paths"]["/inventory/adjust"]["post"]
    assert {"400", "404", "422", "503"} <= set(operation["responses"].keys())
