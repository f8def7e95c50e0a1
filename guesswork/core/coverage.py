"""Coverage gate — is a tag carried by enough works to be worth asking?

Modes:
    RATIO:  coverage >= min_coverage_ratio
    WORKS:  tag_work_count >= min_coverage_works
    AUTO:   coverage >= max(min_coverage_ratio,
                            min(min_coverage_works, total) / max(total, 1))

AUTO lowers the absolute bar for small catalogs (the works floor is clamped
to the catalog size) without ever dropping below the ratio floor.

An optional max_coverage_ratio rejects tags nearly every work carries,
since they cannot discriminate.  Every division uses max(total, 1).
"""

from __future__ import annotations

from guesswork.domain.enums import CoverageMode


def calculate_coverage(tag_work_count: int, total_works: int) -> float:
    """Fraction of works carrying the tag (0.0 for an empty catalog)."""
    if total_works <= 0:
        return 0.0
    return tag_work_count / total_works


def passes_coverage_gate(
    tag_work_count: int,
    total_works: int,
    mode: CoverageMode | str,
    min_coverage_ratio: float | None,
    min_coverage_works: int | None,
    max_coverage_ratio: float | None = None,
) -> bool:
    """Return True if the tag has enough (and not too much) catalog support.

    A threshold the active mode needs but which is None fails the gate.
    """
    mode = CoverageMode(mode)
    coverage = tag_work_count / max(total_works, 1)

    if max_coverage_ratio is not None and coverage > max_coverage_ratio:
        return False

    if mode == CoverageMode.RATIO:
        if min_coverage_ratio is None:
            return False
        return coverage >= min_coverage_ratio

    if mode == CoverageMode.WORKS:
        if min_coverage_works is None:
            return False
        return tag_work_count >= min_coverage_works

    if min_coverage_ratio is None or min_coverage_works is None:
        return False

    clamped_min_works = min(min_coverage_works, total_works)
    min_ratio = max(min_coverage_ratio, clamped_min_works / max(total_works, 1))
    return coverage >= min_ratio
