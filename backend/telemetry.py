"""Turn telemetry: JSON-line event log and summary reader."""

import json
from collections import deque
from datetime import datetime, timezone, timedelta
from pathlib import Path
from typing import Optional, Union

from loguru import logger

from text_utils import normalize_whitespace

_BACKEND_DIR = Path(__file__).resolve().parent


def _parse_iso_utc(ts_raw: str) -> Optional[datetime]:
    try:
        return datetime.fromisoformat(str(ts_raw).replace("Z", "+00:00"))
    except Exception:
        return None


class TelemetryLog:
    def __init__(self, path: Union[str, Path] = "turn_telemetry.log", enabled: bool = True):
        p = Path(path)
        self.path = p if p.is_absolute() else _BACKEND_DIR / p
        self.enabled = enabled

    def append(self, event: str, payload: Optional[dict] = None) -> None:
        if not self.enabled:
            return
        try:
            data = {
                "ts": datetime.now(timezone.utc).isoformat(),
                "event": normalize_whitespace(event or "event"),
                "payload": payload or {},
            }
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(json.dumps(data, ensure_ascii=False) + "\n")
        except OSError as exc:
            # Telemetry must never break a turn.
            logger.debug(f"Telemetry write failed: {exc}")

    def summary(self, hours: int = 24, limit: int = 6) -> dict:
        h = max(1, min(168, int(hours or 24)))
        n = max(1, min(25, int(limit or 6)))
        now_utc = datetime.now(timezone.utc)
        cutoff = now_utc - timedelta(hours=h)

        counts: dict[str, int] = {}
        failure_kinds: dict[str, int] = {}
        recent: deque = deque(maxlen=n)
        parse_errors = 0
        file_exists = self.path.exists()

        if file_exists:
            try:
                with open(self.path, "r", encoding="utf-8") as f:
                    for line in f:
                        raw = (line or "").strip()
                        if not raw:
                            continue
                        try:
                            item = json.loads(raw)
                        except ValueError:
                            parse_errors += 1
                            continue
                        ts = _parse_iso_utc(str(item.get("ts") or ""))
                        if not ts or ts < cutoff:
                            continue
                        event = normalize_whitespace(str(item.get("event") or "event")) or "event"
                        counts[event] = counts.get(event, 0) + 1
                        payload = item.get("payload") if isinstance(item.get("payload"), dict) else {}
                        if event == "turn_failed":
                            kind = normalize_whitespace(str(payload.get("kind") or "")) or "UNKNOWN"
                            failure_kinds[kind] = failure_kinds.get(kind, 0) + 1
                        recent.append({"ts": ts.isoformat(), "event": event, "payload": payload})
            except OSError as exc:
                logger.warning(f"Could not read telemetry log {self.path}: {exc}")

        delivered = counts.get("turn_delivered", 0)
        suppressed = counts.get("turn_suppressed", 0)
        finished = delivered + suppressed
        suppression_rate = round((suppressed / finished) * 100.0, 2) if finished > 0 else 0.0

        return {
            "status": "ok",
            "now_utc": now_utc.isoformat(),
            "window_hours": h,
            "telemetry_enabled": self.enabled,
            "file_exists": file_exists,
            "file_path": str(self.path.name),
            "counts": counts,
            "failure_kinds": failure_kinds,
            "suppression_rate_percent": suppression_rate,
            "recent": list(recent),
            "parse_errors": parse_errors,
        }
