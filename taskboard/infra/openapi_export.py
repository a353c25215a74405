from __future__ import annotations

import json
import sys
from pathlib import Path

from taskboard.main import app


def export_openapi(path: Path = Path("openapi/taskboard.json")) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    schema = app.openapi()
    path.write_text(json.dumps(schema, ensure_ascii=False, indent=2), encoding="utf-8")
    return path


if __name__ == "__main__":
    export_openapi(Path(sys.argv[1]) if len(sys.argv) > 1 else Path("openapi/taskboard.json"))
