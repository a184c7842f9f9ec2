"""Text helpers used for typo-aware assertion diagnostics."""

from __future__ import annotations


def edit_distance(a: str, b: str, limit: int | None = None) -> int:
    """Levenshtein distance between ``a`` and ``b``.

    With ``limit`` set, returns ``limit + 1`` as soon as the distance is
    known to exceed it.
    """
    if a == b:
        return 0
    if limit is not None and abs(len(a) - len(b)) > limit:
        return limit + 1
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            current.append(min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + (ca != cb),
            ))
        if limit is not None and min(current) > limit:
            return limit + 1
        previous = current
    return previous[-1]


def closest_match(expected: str, candidates: list[str], max_distance: int = 2) -> str | None:
    """Return the candidate within ``max_distance`` edits of ``expected``, if any.

    Exact matches are not suggestions and are ignored; ties keep the first
    candidate.
    """
    needle = expected.strip("/").lower()
    best: tuple[int, str] | None = None
    for candidate in candidates:
        distance = edit_distance(needle, candidate.lower(), limit=max_distance)
        if distance == 0 or distance > max_distance:
            continue
        if best is None or distance < best[0]:
            best = (distance, candidate)
    return best[1] if best else None
