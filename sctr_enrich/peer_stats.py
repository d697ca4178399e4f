"""
Peer-group statistics and relative strength.

Statistics are always computed over the full SCTR universe, never over the
requested subset, so a ticker's relative strength reflects its standing
among all ranked peers in its industry/sector:

    RS = (score - group_average) / group_average * 100

RS is undefined (None) for single-member groups, non-positive averages,
unknown labels and missing scores.
"""

import pandas as pd
import structlog

from sctr_enrich.models import PeerGroupStats, RankRecord

logger = structlog.get_logger(__name__)


class PeerStats:
    """Per-industry and per-sector PeerGroupStats for one dataset."""

    def __init__(
        self,
        industries: dict[str, PeerGroupStats],
        sectors: dict[str, PeerGroupStats],
    ):
        self.industries = industries
        self.sectors = sectors


def _group_stats(frame: pd.DataFrame, column: str) -> dict[str, PeerGroupStats]:
    subset = frame[frame[column] != ""]
    if subset.empty:
        return {}
    grouped = subset.groupby(column)["score"].agg(
        ["mean", "count", "min", "max", "median"]
    )
    return {
        str(label): PeerGroupStats(
            average=float(row["mean"]),
            count=int(row["count"]),
            min=float(row["min"]),
            max=float(row["max"]),
            median=float(row["median"]),
        )
        for label, row in grouped.iterrows()
    }


def compute_peer_stats(records: list[RankRecord]) -> PeerStats:
    """Group statistics over records with a rank score and a non-empty label."""
    frame = pd.DataFrame(
        [
            {
                "industry": r.industry.strip(),
                "sector": r.sector.strip(),
                "score": r.rank_score,
            }
            for r in records
            if r.rank_score is not None
        ],
        columns=["industry", "sector", "score"],
    )
    if frame.empty:
        return PeerStats({}, {})

    frame["score"] = frame["score"].astype("float64")
    stats = PeerStats(
        industries=_group_stats(frame, "industry"),
        sectors=_group_stats(frame, "sector"),
    )
    logger.debug(
        "peer_stats_computed",
        records=len(frame),
        industries=len(stats.industries),
        sectors=len(stats.sectors),
    )
    return stats


def relative_strength(
    score: float | None,
    label: str | None,
    groups: dict[str, PeerGroupStats],
) -> float | None:
    if score is None or not label:
        return None
    group = groups.get(label)
    if group is None or group.count <= 1 or group.average <= 0:
        return None
    return (score - group.average) / group.average * 100


class LabelMap:
    """
    Maps labels from an alternate provider back to the SCTR taxonomy.

    The first time a ticker shows both an alternate label and a base label,
    the pair is remembered; later lookups of the alternate label resolve to
    that base label. Built fresh for every request.
    """

    def __init__(self) -> None:
        self._pairs: dict[str, str] = {}

    def observe(self, alternate: str | None, base: str | None) -> None:
        if not alternate or not base or alternate == base:
            return
        self._pairs.setdefault(alternate, base)

    def resolve(self, label: str | None) -> str | None:
        if not label:
            return label
        return self._pairs.get(label, label)

    def __len__(self) -> int:
        return len(self._pairs)
