from __future__ import annotations

import statistics
from collections import Counter
from dataclasses import dataclass
from typing import Dict, Hashable, Iterable, List, Optional, Sequence, Tuple, Union

import pandas as pd

from ..logging_config import logger


@dataclass(frozen=True)
class SingleWinner:
    name: str
    count: int


@dataclass(frozen=True)
class TiedWinners:
    names: Tuple[str, ...]
    count: int


Winner = Union[SingleWinner, TiedWinners]


@dataclass(frozen=True)
class CountStats:
    mean: float
    median: float
    stdev: float


@dataclass(frozen=True)
class CountSummary:
    total: int
    by_country: Dict[str, int]
    by_country_city: Dict[Tuple[str, str], int]
    by_city: Dict[str, int]
    country_stats: CountStats
    top_country: Optional[Winner]
    top_city: Optional[Winner]

    def to_frames(self) -> Dict[str, pd.DataFrame]:
        return {
            "country": pd.DataFrame(
                [(label(country), count) for country, count in self.by_country.items()],
                columns=["Country", "Infections"],
            ),
            "country_city": pd.DataFrame(
                [(label(country), label(city), count) for (country, city), count in self.by_country_city.items()],
                columns=["Country", "City", "Infections"],
            ),
            "city": pd.DataFrame(
                [(label(city), count) for city, count in self.by_city.items()],
                columns=["City", "Infections"],
            ),
        }

    def report_lines(self) -> List[str]:
        if self.total == 0:
            return ["Found 0 ransomware-infected hosts."]
        countries = len(self.by_country)
        lines = [
            f"Found {self.total} ransomware-infected {_hosts(self.total)} "
            f"in {countries} {'country' if countries == 1 else 'countries'}."
        ]
        if self.top_country is not None:
            lines.append(describe_winner(self.top_country, "country", "countries"))
        if self.top_city is not None:
            lines.append(describe_winner(self.top_city, "city", "cities"))
        stats = self.country_stats
        lines.append(
            f"Infections per country: mean {stats.mean:.2f}, median {stats.median:.2f}, "
            f"standard deviation {stats.stdev:.2f}."
        )
        return lines


UNKNOWN_LABEL = "(unknown)"


def label(name: str) -> str:
    """Display form of a country or city name; blanks come from hosts Shodan could not place."""
    return name if name.strip() else UNKNOWN_LABEL


def _hosts(count: int) -> str:
    return "host" if count == 1 else "hosts"


def tally(values: Iterable[Hashable]) -> Dict:
    """Count values, most frequent first; ties ordered by value."""
    counts = Counter(values)
    return {key: count for key, count in sorted(counts.items(), key=lambda item: (-item[1], item[0])) if count > 0}


def describe_counts(counts: Sequence[int]) -> CountStats:
    # stdev is defined as 0 for fewer than two samples; an empty sequence gives all zeros
    if not counts:
        return CountStats(mean=0.0, median=0.0, stdev=0.0)
    values = list(counts)
    spread = statistics.stdev(values) if len(values) > 1 else 0.0
    return CountStats(
        mean=round(float(statistics.mean(values)), 2),
        median=round(float(statistics.median(values)), 2),
        stdev=round(float(spread), 2),
    )


def most_common(counts: Dict[str, int]) -> Optional[Winner]:
    if not counts:
        return None
    top = max(counts.values())
    names = [name for name, count in counts.items() if count == top]
    if len(names) == 1:
        return SingleWinner(name=names[0], count=top)
    return TiedWinners(names=tuple(names), count=top)


def describe_winner(winner: Winner, noun: str, plural: str) -> str:
    if isinstance(winner, TiedWinners):
        return (
            f"The {plural} with the most infections are {', '.join(label(name) for name in winner.names)} "
            f"with {winner.count} infected {_hosts(winner.count)} each."
        )
    return f"The {noun} with the most infections is {label(winner.name)} with {winner.count} infected {_hosts(winner.count)}."


def aggregate(devices: pd.DataFrame) -> CountSummary:
    by_country = tally(devices["Country"])
    by_city = tally(devices["City"])
    summary = CountSummary(
        total=len(devices),
        by_country=by_country,
        by_country_city=tally(zip(devices["Country"], devices["City"])),
        by_city=by_city,
        country_stats=describe_counts(list(by_country.values())),
        top_country=most_common(by_country),
        top_city=most_common(by_city),
    )
    logger.info(
        "aggregate.done",
        total=summary.total,
        countries=len(by_country),
        cities=len(by_city),
        mean=summary.country_stats.mean,
    )
    return summary
