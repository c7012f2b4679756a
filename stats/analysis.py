"""
Repository analysis helpers: per-contributor totals, language shares and weekly averages
derived from GitHub's statistics payloads.
"""
from typing import Any, Dict, Iterable, List, Tuple

from normalize.models import ContributorStats, LanguageShare, WeeklyCommitBucket


def _int(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def contributor_stats(raw_contributors: Iterable[Dict[str, Any]]) -> Tuple[ContributorStats, ...]:
    """
    Fold /stats/contributors entries ({'author': {...}, 'weeks': [{'w', 'a', 'd', 'c'}]}) into
    per-contributor totals, most commits first. Entries without an author (deleted accounts)
    are reported as 'ghost'.
    """
    out: List[ContributorStats] = []
    for raw in raw_contributors or []:
        if not isinstance(raw, dict):
            continue
        author = raw.get('author') or {}
        weeks = [w for w in raw.get('weeks') or [] if isinstance(w, dict)]
        out.append(ContributorStats(
            login=author.get('login') or 'ghost',
            avatar_url=author.get('avatar_url'),
            commits=sum(_int(w.get('c')) for w in weeks),
            additions=sum(_int(w.get('a')) for w in weeks),
            deletions=sum(_int(w.get('d')) for w in weeks),
            weeks_active=sum(1 for w in weeks if _int(w.get('c')) > 0),
        ))
    out.sort(key=lambda c: (-c.commits, c.login.lower()))
    return tuple(out)


def language_shares(raw_languages: Dict[str, Any]) -> Tuple[LanguageShare, ...]:
    """Turn a {language: bytes} mapping into percentages of the total, largest first."""
    sizes = {lang: _int(size) for lang, size in (raw_languages or {}).items()}
    total = sum(sizes.values())
    if total <= 0:
        return ()
    shares = [LanguageShare(language=lang, bytes=size, percentage=round(size * 100.0 / total, 1)) for lang, size in sizes.items()]
    shares.sort(key=lambda s: (-s.bytes, s.language))
    return tuple(shares)


def average_per_week(buckets: Tuple[WeeklyCommitBucket, ...]) -> float:
    if not buckets:
        return 0.0
    return sum(b.total for b in buckets) / len(buckets)


__all__ = ["average_per_week", "contributor_stats", "language_shares"]
