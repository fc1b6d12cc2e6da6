"""
IBOV Quant Provenance Extraction

Node ID: extraction.provenance
Pulls web citations out of the engine's grounding metadata. Only records
carrying a `web` entry count; a missing title becomes "Web Source". Absent
or malformed metadata yields an empty list, never an error. The list is not
deduplicated, so citation order matches the engine's.
"""

from __future__ import annotations

from typing import Any, Iterable

from ibov_quant.core.models import Source

DEFAULT_SOURCE_TITLE = "Web Source"


def extract_sources(grounding: Iterable[Any] | None) -> list[Source]:
    if not grounding:
        return []

    sources: list[Source] = []
    for record in grounding:
        if not isinstance(record, dict):
            continue
        web = record.get("web")
        if not isinstance(web, dict):
            continue
        sources.append(
            Source(
                title=str(web.get("title") or DEFAULT_SOURCE_TITLE),
                uri=str(web.get("uri") or ""),
            )
        )
    return sources
