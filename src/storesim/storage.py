from __future__ import annotations

import json
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from storesim.models import GameState
from storesim.reporting import AutomationReport, render_markdown

REPORT_VERSION = "1.0.0"


def project_root() -> Path:
    # .../src/storesim/storage.py -> parents[2] == repo root
    return Path(__file__).resolve().parents[2]


def output_dir(path: Optional[Path] = None) -> Path:
    p = Path(path) if path is not None else project_root() / "output" / "automation-smart"
    if not p.is_absolute():
        p = Path.cwd() / p
    p.mkdir(parents=True, exist_ok=True)
    return p


def state_to_dict(state: GameState) -> Dict[str, Any]:
    return {"version": REPORT_VERSION, "state": asdict(state)}


def json_safe(value: Any) -> Any:
    # json has no inf/nan literals
    if isinstance(value, float) and (value != value or value in (float("inf"), float("-inf"))):
        return None
    if isinstance(value, dict):
        return {k: json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [json_safe(v) for v in value]
    return value


def dumps(payload: Any, indent: Optional[int] = 2) -> str:
    return json.dumps(json_safe(payload), ensure_ascii=False, indent=indent)


def write_report(report: AutomationReport, out_dir: Optional[Path] = None) -> Tuple[Path, Path]:
    d = output_dir(out_dir)
    json_path = d / "report.json"
    md_path = d / "report.md"
    json_path.write_text(dumps(report.to_dict()), encoding="utf-8")
    md_path.write_text(render_markdown(report), encoding="utf-8")
    return json_path, md_path
