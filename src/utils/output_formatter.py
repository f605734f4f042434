import json
from typing import Any, Dict, List, Mapping

from ..models.events import EventOutcome
from ..models.http import Response, StoredResponse

class OutputFormatter:
    def __init__(self):
        self.supported_formats = ["tsv", "json"]

    def _check(self, format_type: str) -> str:
        format_type = format_type.lower()
        if format_type not in self.supported_formats:
            raise ValueError(f"Unsupported format: {format_type}")
        return format_type

    def format_outcome(self, outcome: EventOutcome, format_type: str = "tsv") -> str:
        format_type = self._check(format_type)
        data = outcome.to_dict()
        if format_type == "json":
            return json.dumps(data, indent=2, ensure_ascii=False, default=str)
        status = "-" if data["status"] is None else str(data["status"])
        state = "ok" if outcome.ok else f"error: {outcome.error}"
        detail = " ".join(f"{k}={v}" for k, v in sorted(data["detail"].items()))
        return "\t".join([data["kind"], "handled" if outcome.handled else "ignored", status, state, detail])

    def format_response(self, response: Response, format_type: str = "tsv", show_body: bool = True) -> str:
        format_type = self._check(format_type)
        body = response.text() if show_body else ""
        if format_type == "json":
            return json.dumps(
                {
                    "url": response.url,
                    "status": response.status,
                    "type": response.type,
                    "from_cache": response.from_cache,
                    "headers": dict(response.headers),
                    "body": body,
                },
                indent=2,
                ensure_ascii=False,
            )
        head = "\t".join([str(response.status), "cache" if response.from_cache else "network", response.url])
        return f"{head}\n{body}" if body else head

    def format_caches(self, stats: Mapping[str, int], format_type: str = "tsv") -> str:
        format_type = self._check(format_type)
        if format_type == "json":
            return json.dumps([{"name": n, "entries": c} for n, c in stats.items()], indent=2)
        return "\n".join(f"{name}\t{count}" for name, count in stats.items())

    def format_entries(self, entries: List[StoredResponse], format_type: str = "tsv") -> str:
        format_type = self._check(format_type)
        rows: List[Dict[str, Any]] = [e.to_dict() for e in entries]
        if format_type == "json":
            return json.dumps(rows, indent=2, ensure_ascii=False)
        return "\n".join(f"{r['status']}\t{r['size']}\t{r['url']}" for r in rows)


output_formatter = OutputFormatter()
