"""
Turn the backend's JSONL log into a readable per-session timeline.

    uvicorn server.asgi:app --app-dir backend | tee run.log
    python tools/log_timeline.py run.log --session sess_1a2b3c4d5e6f

ts_ms is rebased to the first record shown, in seconds.
"""
import argparse
import json
from pathlib import Path


def load_records(text: str) -> list[dict]:
    records = []
    for line in text.splitlines():
        line = line.strip()
        if not line.startswith("{"):
            continue  # uvicorn's own output
        try:
            records.append(json.loads(line))
        except json.JSONDecodeError:
            continue
    return records


def timeline(records: list[dict], session_id: str | None = None) -> list[str]:
    if session_id is not None:
        records = [r for r in records if r.get("session_id") == session_id]
    records = [r for r in records if isinstance(r.get("ts_ms"), int)]
    if not records:
        return []

    t0 = records[0]["ts_ms"]
    lines = []
    for r in records:
        rel = (r["ts_ms"] - t0) / 1000
        label = r.get("event_type", "?")
        decision = r.get("decision")
        if decision:
            label = f"{label} -> {decision}"
        if r.get("event_type") == "METRIC_TIMER":
            label = f"METRIC {r.get('metric')} {r.get('value_ms')}ms ({r.get('outcome')})"
        state = r.get("state", "")
        lines.append(f"{rel:9.3f}s  {state:<15} {label}")
    return lines


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("log_file", type=Path)
    parser.add_argument("--session", default=None)
    args = parser.parse_args()

    for out in timeline(load_records(args.log_file.read_text()), args.session):
        print(out)
