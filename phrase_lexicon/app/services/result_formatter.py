"""Markdown rendering of lookup responses for the UI."""

from __future__ import annotations

from html import escape
from typing import Any, Dict, List, Sequence, Tuple

from phrase_lexicon.core import Entry, ErrorCode, LookupResponse

_SECTIONS: Tuple[Tuple[str, str], ...] = (
    ("types", "Type"),
    ("meanings", "Meanings"),
    ("synonyms", "Synonyms"),
    ("translations", "Translations"),
    ("examples", "Examples"),
)


class EntryResultFormatter:
    """Render lookup responses as markdown cards."""

    def format_response(self, phrase: str, response: LookupResponse) -> str:
        if not phrase or not phrase.strip():
            return "Enter a phrase to look it up."

        if response.error_code not in (ErrorCode.NONE, ErrorCode.STORE_WRITE_FAILED):
            return (
                f"❌ Could not find or build an entry for '{escape(phrase)}'.\n\n"
                f"_{escape(response.error)}_ (code {int(response.error_code)})"
            )

        if not response.contents:
            return f"❌ No entries found for '{escape(phrase)}'."

        lines: List[str] = [self._headline(phrase, response), ""]
        for entry in response.contents:
            lines.extend(self._format_entry(entry))
            lines.append("")

        if response.error_code == ErrorCode.STORE_WRITE_FAILED:
            lines.append(f"⚠️ The new entry was not saved: {escape(response.error)}")
        if response.warnings:
            lines.append(f"⚠️ {len(response.warnings)} lookup(s) failed; results may be incomplete.")
        return "\n".join(lines).rstrip()

    def _headline(self, phrase: str, response: LookupResponse) -> str:
        count = len(response.contents)
        if response.exact_match:
            return f"### ✅ Exact match for '{escape(phrase)}'"
        noun = "entry" if count == 1 else "entries"
        return f"### 🔎 {count} related {noun} for '{escape(phrase)}'"

    def _format_entry(self, entry: Entry) -> List[str]:
        word_label = "word" if entry.word_count == 1 else "words"
        lines = [f"#### {escape(entry.phrase)} <small>({entry.word_count} {word_label})</small>"]
        for field_name, label in _SECTIONS:
            values: Sequence[str] = getattr(entry, field_name)
            if not values:
                continue
            if field_name == "examples":
                lines.append(f"**{label}:**")
                lines.extend(f"- _{escape(value)}_" for value in values)
            else:
                lines.append(f"**{label}:** {', '.join(escape(value) for value in values)}")
        return lines

    def format_trace(self, snapshot: Dict[str, Any]) -> str:
        """Render a telemetry snapshot as a short markdown activity log."""

        if not snapshot:
            return ""
        events = snapshot.get("events") or []
        metadata = snapshot.get("metadata") or {}
        if not events and not metadata:
            return ""

        lines: List[str] = ["#### Lookup activity", ""]
        for event in events[-8:]:
            name = str(event.get("name", "event"))
            duration = event.get("duration")
            details = event.get("metadata") or {}
            suffix = ", ".join(f"{key}={value}" for key, value in details.items())
            suffix = f" ({suffix})" if suffix else ""
            if isinstance(duration, (int, float)):
                lines.append(f"- `{name}` took {float(duration):.3f}s{suffix}")
            else:
                lines.append(f"- `{name}`{suffix}")
        resolved = metadata.get("resolved_by")
        if resolved:
            lines.extend(["", f"**Resolved by:** {resolved}"])
        return "\n".join(lines)

    def summarize(self, response: LookupResponse) -> Dict[str, Any]:
        """Compact summary used for status lines and structured logs."""

        return {
            "results": len(response.contents),
            "exact_match": response.exact_match,
            "error_code": int(response.error_code),
            "warnings": len(response.warnings),
        }


__all__ = ["EntryResultFormatter"]
