"""review_pipeline.normalize

Turn raw engine text into :class:`~review_bench.domain.Finding` records.

Engines answer in free-form markdown. The normalizer does a tolerant scan for
labeled fields (``Location:``, ``Severity:``, ``Category:``, ``Confidence:``,
``Description:`` and common synonyms) in document order and groups them into
blocks. It never raises on malformed input: a block that cannot be understood
is dropped with a log line, and the rest of the batch is still normalized.

Degradation rules
-----------------
- severity missing or unparseable -> ``Low``, confidence ``Potential``, and a note
- location unparseable -> unlocated (deduplicated only by exact description)
- category missing -> the category class of the producing dimension
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from review_bench.domain import Confidence, Finding, Location, Severity

from .dimensions import DIMENSIONS, GENERAL_FOCUS

logger = logging.getLogger(__name__)

# label alias -> canonical field
FIELD_ALIASES: Dict[str, str] = {
    "location": "location",
    "loc": "location",
    "file": "location",
    "path": "location",
    "where": "location",
    "site": "location",
    "line": "line",
    "lines": "line",
    "lineno": "line",
    "severity": "severity",
    "priority": "severity",
    "impact": "severity",
    "category": "category",
    "type": "category",
    "kind": "category",
    "dimension": "category",
    "confidence": "confidence",
    "certainty": "confidence",
    "description": "description",
    "issue": "description",
    "problem": "description",
    "finding": "description",
    "summary": "description",
    "details": "description",
    "detail": "description",
    "explanation": "description",
    "title": "description",
}

_BULLET_RE = re.compile(r"^\s*(?:[-*+]|\d+[.)])\s+")
_FIELD_RE = re.compile(r"^(?P<label>[A-Za-z][A-Za-z ]{0,24}?)\s*:\s*(?P<value>.*)$")
_SEPARATOR_RE = re.compile(r"^\s*(?:-{3,}|\*{3,}|_{3,}|={3,})\s*$")
_HEADING_RE = re.compile(r"^\s*#{1,6}\s+(?P<text>.*)$")
_HEADING_PREFIX_RE = re.compile(r"^(?:finding|issue)s?\b\s*#?\s*\d*\s*[:.)-]?\s*", re.IGNORECASE)

_LOC_PATTERNS = (
    # path/to/file.ext:52  |  path/to/file.ext:52-60  |  path:52:7 (column ignored)
    re.compile(r"^(?P<unit>[^\s:()]+?):(?P<start>\d+)(?:\s*-\s*(?P<end>\d+))?(?::\d+)?\b"),
    # path/to/file.ext#L52-L60
    re.compile(r"^(?P<unit>[^\s#()]+)#L(?P<start>\d+)(?:-L?(?P<end>\d+))?"),
    # path/to/file.ext line 52 | path/to/file.ext (lines 52-60) | path, line 52
    re.compile(
        r"^(?P<unit>[^\s,()]+)[,\s]*\(?\s*lines?\s+(?P<start>\d+)(?:\s*(?:-|to)\s*(?P<end>\d+))?",
        re.IGNORECASE,
    ),
)
_UNIT_ONLY_RE = re.compile(r"^(?P<unit>[\w@+.-]+(?:/[\w@+.-]+)*\.[A-Za-z0-9]+|[\w@+.-]+(?:/[\w@+.-]+)+/?)$")
_LINE_VALUE_RE = re.compile(r"^L?(?P<start>\d+)(?:\s*(?:-|to)\s*L?(?P<end>\d+))?")
_NO_LOCATION = {"", "n/a", "na", "none", "unknown", "various", "multiple", "global", "-", "unlocated"}
_SLASH_RE = re.compile(r"/+")


def normalize_unit(path: str, *, strip_prefixes: Sequence[str] = ()) -> str:
    """Normalize a reported file path into a repo-relative POSIX-ish form.

    Heuristics
    ----------
    1) Normalize separators to "/"
    2) Drop a known working-copy prefix (engines often print absolute paths)
    3) Strip leading "./" and "/"
    4) Collapse multiple slashes
    """
    s = str(path or "").replace("\\", "/").strip()
    for prefix in strip_prefixes:
        p = str(prefix or "").replace("\\", "/").rstrip("/")
        if p and s.startswith(p + "/"):
            s = s[len(p) + 1 :]
            break
    while s.startswith("./"):
        s = s[2:]
    s = s.lstrip("/")
    return _SLASH_RE.sub("/", s)


def parse_location(raw: Optional[str], *, strip_prefixes: Sequence[str] = ()) -> Location:
    """Best-effort parse of a location field. Unparseable input is unlocated."""
    s = str(raw or "").strip().strip("`'\"[]<>").strip()
    if s.lower().rstrip(".") in _NO_LOCATION:
        return Location()

    for pat in _LOC_PATTERNS:
        m = pat.match(s)
        if not m:
            continue
        start = int(m.group("start"))
        end = int(m.group("end")) if m.group("end") else None
        if start <= 0:
            continue
        if end is not None and end < start:
            end = None
        unit = normalize_unit(m.group("unit").strip("`").rstrip(":"), strip_prefixes=strip_prefixes)
        if unit:
            return Location(unit=unit, position=start, end_position=end)

    head = s.split()[0].strip("`,;") if s.split() else ""
    if _UNIT_ONLY_RE.match(head):
        unit = normalize_unit(head, strip_prefixes=strip_prefixes)
        if unit:
            return Location(unit=unit)
    return Location()


@dataclass
class RawBlock:
    """Labeled fields collected for one finding, in document order."""

    fields: Dict[str, str] = field(default_factory=dict)
    heading: Optional[str] = None

    def has(self, name: str) -> bool:
        return name in self.fields

    def is_empty(self) -> bool:
        return not self.fields


def _clean_line(line: str) -> str:
    s = line.replace("**", "").replace("__", "")
    return _BULLET_RE.sub("", s).strip()


def scan_blocks(text: str) -> List[RawBlock]:
    """Split raw text into blocks of labeled fields."""
    blocks: List[RawBlock] = []
    current = RawBlock()
    pending_heading: Optional[str] = None

    def _close() -> None:
        nonlocal current
        if not current.is_empty():
            blocks.append(current)
        current = RawBlock()

    for line in str(text or "").splitlines():
        if _SEPARATOR_RE.match(line):
            _close()
            continue

        hm = _HEADING_RE.match(line)
        if hm:
            _close()
            title = _HEADING_PREFIX_RE.sub("", _clean_line(hm.group("text")))
            pending_heading = title or None
            continue

        cleaned = _clean_line(line)
        if not cleaned:
            continue

        fm = _FIELD_RE.match(cleaned)
        name = FIELD_ALIASES.get(fm.group("label").strip().lower()) if fm else None
        if fm and name:
            value = fm.group("value").strip()
            if name == "description" and current.has("description"):
                current.fields["description"] += " " + value
                continue
            if current.has(name):
                _close()
            if current.is_empty() and pending_heading:
                current.heading = pending_heading
                pending_heading = None
            current.fields[name] = value
            continue

        # Unlabeled text continues the description of an open block.
        if not current.is_empty():
            prev = current.fields.get("description")
            current.fields["description"] = f"{prev} {cleaned}" if prev else cleaned

    _close()
    return blocks


def _with_line(location: Location, raw_line: Optional[str]) -> Location:
    """Apply a separate ``Line:`` field to a unit-level location."""
    if not location.is_located or location.position is not None:
        return location
    m = _LINE_VALUE_RE.match(str(raw_line or "").strip())
    if not m or int(m.group("start")) <= 0:
        return location
    start = int(m.group("start"))
    end = int(m.group("end")) if m.group("end") else None
    if end is not None and end <= start:
        end = None
    return Location(unit=location.unit, position=start, end_position=end)


def _block_to_finding(block: RawBlock, *, source: str, strip_prefixes: Sequence[str]) -> Optional[Finding]:
    fields = block.fields
    location = parse_location(fields.get("location"), strip_prefixes=strip_prefixes)
    location = _with_line(location, fields.get("line"))
    description = " ".join(str(fields.get("description") or block.heading or "").split())
    if not description and not location.is_located:
        return None

    notes: List[str] = []
    severity = Severity.parse(fields.get("severity"))
    confidence = Confidence.parse(fields.get("confidence"))
    if severity is None:
        raw_sev = fields.get("severity")
        notes.append(
            f"severity unparseable ({raw_sev!r}); defaulted to Low" if raw_sev else "severity missing; defaulted to Low"
        )
        severity = Severity.LOW
        confidence = Confidence.POTENTIAL
    elif confidence is None:
        confidence = Confidence.LIKELY

    category = str(fields.get("category") or "").strip().strip("`")
    if not category:
        info = DIMENSIONS.get(source)
        category = info.category_class if info else "uncategorized"

    if fields.get("location") and not location.is_located:
        notes.append(f"location unparseable ({fields['location']!r})")

    return Finding(
        location=location,
        severity=severity,
        category=category,
        description=description or "(no description)",
        confidence=confidence,
        contributing_sources=frozenset({source}),
        notes=tuple(notes),
    )


def normalize_raw_text(
    text: str,
    *,
    source: str = GENERAL_FOCUS,
    strip_prefixes: Sequence[str] = (),
) -> List[Finding]:
    """Parse one raw text block into zero or more findings."""
    findings: List[Finding] = []
    for i, block in enumerate(scan_blocks(text)):
        finding = _block_to_finding(block, source=source, strip_prefixes=strip_prefixes)
        if finding is None:
            logger.debug("normalize[%s]: dropped block %d without description or location", source, i)
            continue
        findings.append(finding)
    return findings


def normalize_outputs(
    outputs: Iterable[Tuple[str, Optional[str]]],
    *,
    strip_prefixes: Sequence[str] = (),
) -> List[Finding]:
    """Normalize ``(source, raw_text)`` pairs. ``None`` text means "no findings"."""
    out: List[Finding] = []
    for source, raw in outputs:
        if raw is None:
            continue
        out.extend(normalize_raw_text(raw, source=source, strip_prefixes=strip_prefixes))
    return out
