# utils/names.py
import re


def norm_name(s: str) -> str:
    """Lowercase and drop non-alphanumerics, so 'Goblin_2' == 'goblin 2'."""
    return re.sub(r"[^a-z0-9]+", "", str(s or "").lower())


def edit_distance(a: str, b: str) -> int:
    if a == b:
        return 0
    if not a or not b:
        return max(len(a), len(b))
    row = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        diag, row[0] = row[0], i
        for j, cb in enumerate(b, start=1):
            above = row[j]
            row[j] = min(row[j] + 1, row[j - 1] + 1, diag + (ca != cb))
            diag = above
    return row[-1]


def resolve_name(candidates: list[str], query: str) -> tuple[str | None, list[str]]:
    """
    Match `query` against `candidates`: exact → prefix → substring → 1-2 typos.
    Returns (match | None, suggestions when ambiguous).
    """
    q = norm_name(query)
    if not q:
        return None, []

    exact = [c for c in candidates if norm_name(c) == q]
    if exact:
        return exact[0], []

    for pick in (
        lambda n: n.startswith(q),
        lambda n: q in n,
    ):
        hits = [c for c in candidates if pick(norm_name(c))]
        if len(hits) == 1:
            return hits[0], []
        if hits:
            return None, hits[:8]

    scored = sorted(
        ((min(edit_distance(q, norm_name(c)), edit_distance(q, norm_name(c)[: len(q)])), c) for c in candidates),
        key=lambda x: (x[0], len(x[1])),
    )
    if not scored:
        return None, []
    best = scored[0][0]
    if best > (1 if len(q) <= 4 else 2):
        return None, []
    ties = [c for d, c in scored if d == best]
    if len(ties) == 1:
        return ties[0], []
    return None, ties[:8]
