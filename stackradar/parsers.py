"""Version, date and severity parsing.

Pure functions for splitting version strings, extracting the major
line used by lifecycle tables, parsing loosely formatted lifecycle
dates, scoring CVSS v3 vectors and ranking priorities.
No I/O or network calls; all inputs are in-memory values.
"""

import math
import re
from datetime import date

PRIORITY_ORDER: dict[str, int] = {"low": 0, "medium": 1, "high": 2, "critical": 3}
SEVERITY_ORDER: dict[str, int] = {"unknown": 0, "low": 1, "medium": 2, "high": 3, "critical": 4}


def norm(s: str) -> str:
    """Normalize a string for case-insensitive comparison.

    Collapses whitespace, strips, and lowercases.

    Args:
        s: Input string (may be None).

    Returns:
        Normalized lowercase string.
    """
    return re.sub(r"\s+", " ", (s or "").strip().lower())


def parse_version_parts(version: str) -> tuple[int, int, int]:
    """Split a version string into a ``(major, minor, patch)`` triple.

    A leading ``v`` and anything after ``-`` or ``+`` are ignored; missing
    parts count as zero.

    Args:
        version: Version string such as ``v18.2.0`` or ``5.0.0-beta.1``.

    Returns:
        Integer triple.

    Raises:
        ValueError: if a part is not an integer.
    """
    v = (version or "").strip()
    if v[:1] in ("v", "V"):
        v = v[1:]
    v = re.split(r"[-+]", v, maxsplit=1)[0]
    if not v:
        raise ValueError(f"Empty version: {version!r}")
    parts = [int(p) for p in v.split(".")[:3]]
    while len(parts) < 3:
        parts.append(0)
    return parts[0], parts[1], parts[2]


def extract_major_version(version: str) -> str | None:
    """Extract the release line a lifecycle table is keyed by.

    Non-numeric characters are dropped first.  Versions written ``3.x``
    with ``x > 7`` (``3.11``) use the second part; anything else uses the
    leading number.

    Args:
        version: Free-text version.

    Returns:
        Major line as a string, or None if no digits were found.
    """
    cleaned = re.sub(r"[^0-9.]", "", version or "")
    parts = [p for p in cleaned.split(".") if p]
    if not parts:
        return None
    if len(parts) >= 2 and parts[0] == "3" and parts[1].isdigit() and int(parts[1]) > 7:
        return parts[1]
    return parts[0]


def version_key_candidates(version: str) -> list[str]:
    """Keys to try against a cycle table: exact, ``major.minor``, major."""
    candidates: list[str] = []
    exact = (version or "").strip().lstrip("vV")
    if exact:
        candidates.append(exact)
    parts = re.sub(r"[^0-9.]", "", exact).split(".")
    if len(parts) >= 2 and parts[0] and parts[1]:
        candidates.append(f"{parts[0]}.{parts[1]}")
    major = extract_major_version(exact)
    if major:
        candidates.append(major)
    seen: set[str] = set()
    return [c for c in candidates if not (c in seen or seen.add(c))]


def parse_lifecycle_date(text: str | None) -> date | None:
    """Parse a lifecycle date from structured or prose text.

    Accepts ``YYYY-MM-DD``, ``YYYY-MM`` (first of the month) and ``YYYY``
    (first of January).  For prose such as ``"Java 21: 2031"`` the last
    four-digit year is used.

    Args:
        text: Date-like string.

    Returns:
        Parsed date, or None when nothing date-like is present.
    """
    if not text or not isinstance(text, str):
        return None
    s = text.strip()

    m = re.fullmatch(r"(\d{4})-(\d{1,2})-(\d{1,2})", s)
    if m:
        try:
            return date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
        except ValueError:
            return None
    m = re.fullmatch(r"(\d{4})-(\d{1,2})", s)
    if m:
        try:
            return date(int(m.group(1)), int(m.group(2)), 1)
        except ValueError:
            return None
    if re.fullmatch(r"\d{4}", s):
        return date(int(s), 1, 1)

    years = re.findall(r"\b((?:19|20)\d{2})\b", s)
    if years:
        return date(int(years[-1]), 1, 1)
    return None


def _roundup(value: float) -> float:
    """CVSS v3.1 Roundup: smallest one-decimal number >= value."""
    int_input = round(value * 100000)
    if int_input % 10000 == 0:
        return int_input / 100000.0
    return (math.floor(int_input / 10000) + 1) / 10.0


_AV = {"N": 0.85, "A": 0.62, "L": 0.55, "P": 0.2}
_AC = {"L": 0.77, "H": 0.44}
_PR_UNCHANGED = {"N": 0.85, "L": 0.62, "H": 0.27}
_PR_CHANGED = {"N": 0.85, "L": 0.68, "H": 0.5}
_UI = {"N": 0.85, "R": 0.62}
_CIA = {"H": 0.56, "L": 0.22, "N": 0.0}


def cvss3_base_score(vector: str) -> float | None:
    """Compute the CVSS v3.x base score of a vector string.

    Args:
        vector: e.g. ``CVSS:3.1/AV:N/AC:L/PR:N/UI:N/S:U/C:H/I:H/A:H``.

    Returns:
        Base score rounded up to one decimal, or None if the vector is
        not a complete v3 vector.
    """
    if not vector or not isinstance(vector, str):
        return None
    metrics: dict[str, str] = {}
    for part in vector.split("/"):
        if ":" in part:
            k, _, v = part.partition(":")
            metrics[k.strip().upper()] = v.strip().upper()
    if "CVSS" in metrics and not metrics["CVSS"].startswith("3"):
        return None
    try:
        scope_changed = metrics["S"] == "C"
        av = _AV[metrics["AV"]]
        ac = _AC[metrics["AC"]]
        pr = (_PR_CHANGED if scope_changed else _PR_UNCHANGED)[metrics["PR"]]
        ui = _UI[metrics["UI"]]
        c, i, a = _CIA[metrics["C"]], _CIA[metrics["I"]], _CIA[metrics["A"]]
    except KeyError:
        return None

    iss = 1 - (1 - c) * (1 - i) * (1 - a)
    if scope_changed:
        impact = 7.52 * (iss - 0.029) - 3.25 * (iss - 0.02) ** 15
    else:
        impact = 6.42 * iss
    exploitability = 8.22 * av * ac * pr * ui

    if impact <= 0:
        return 0.0
    if scope_changed:
        return _roundup(min(1.08 * (impact + exploitability), 10))
    return _roundup(min(impact + exploitability, 10))


def score_to_severity(score: float | None) -> str:
    """Map a CVSS base score to a severity bucket."""
    if score is None:
        return "unknown"
    if score >= 9.0:
        return "critical"
    if score >= 7.0:
        return "high"
    if score >= 4.0:
        return "medium"
    return "low"


def levenshtein(a: str, b: str) -> int:
    """Edit distance between two strings."""
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)
    prev = list(range(len(b) + 1))
    for i, ca in enumerate(a, 1):
        cur = [i]
        for j, cb in enumerate(b, 1):
            cur.append(min(prev[j] + 1, cur[j - 1] + 1, prev[j - 1] + (ca != cb)))
        prev = cur
    return prev[-1]


def max_priority(*priorities: str | None) -> str:
    """Return the most urgent of the given priorities (``low`` if none)."""
    best = "low"
    for p in priorities:
        if p in PRIORITY_ORDER and PRIORITY_ORDER[p] > PRIORITY_ORDER[best]:
            best = p
    return best
