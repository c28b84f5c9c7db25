"""Approximate Final Action history for every category × chargeability pair.

One sample per bulletin month, October 2024 through October 2025.  The
velocity model reads these; live bulletin data is appended on top when
available.  Values are rounded to the month and are illustrative of the
observed trend rather than an archival record.
"""

from __future__ import annotations

from stateside.models.bulletin import (
    BulletinSample,
    Chargeability,
    EBCategory,
    HistoricalBulletinSeries,
    month_index,
    parse_cutoff,
)

FIRST_BULLETIN = month_index(2024, 10)

_IN, _CN, _ROW = Chargeability.INDIA, Chargeability.CHINA, Chargeability.ALL_OTHER

# Consecutive monthly Final Action cutoffs starting at FIRST_BULLETIN.
_RAW_HISTORY: dict[tuple[EBCategory, Chargeability], list[str]] = {
    (EBCategory.EB1, _IN): [
        "Jun 2021", "Jun 2021", "Sep 2021", "Sep 2021", "Sep 2021", "Dec 2021",
        "Dec 2021", "Dec 2021", "Jan 2022", "Jan 2022", "Feb 2022", "Feb 2022",
        "Feb 2022",
    ],
    (EBCategory.EB1, _CN): [
        "Aug 2022", "Aug 2022", "Aug 2022", "Aug 2022", "Sep 2022", "Sep 2022",
        "Sep 2022", "Oct 2022", "Oct 2022", "Oct 2022", "Nov 2022", "Nov 2022",
        "Nov 2022",
    ],
    (EBCategory.EB1, _ROW): ["C"] * 13,
    (EBCategory.EB2, _IN): [
        "Jul 2012", "Jul 2012", "Aug 2012", "Aug 2012", "Sep 2012", "Sep 2012",
        "Oct 2012", "Oct 2012", "Nov 2012", "Nov 2012", "Dec 2012", "Dec 2012",
        "Jan 2013",
    ],
    (EBCategory.EB2, _CN): [
        "Mar 2020", "Mar 2020", "Apr 2020", "Apr 2020", "May 2020", "May 2020",
        "Jun 2020", "Jun 2020", "Jul 2020", "Jul 2020", "Aug 2020", "Aug 2020",
        "Sep 2020",
    ],
    (EBCategory.EB2, _ROW): [
        "Mar 2023", "Apr 2023", "May 2023", "Jun 2023", "Jul 2023", "Aug 2023",
        "Sep 2023", "Oct 2023", "Nov 2023", "Dec 2023", "Feb 2024", "Mar 2024",
        "Apr 2024",
    ],
    (EBCategory.EB3, _IN): [
        "Mar 2013", "Mar 2013", "Apr 2013", "May 2013", "May 2013", "Jun 2013",
        "Jul 2013", "Jul 2013", "Aug 2013", "Sep 2013", "Sep 2013", "Oct 2013",
        "Nov 2013",
    ],
    (EBCategory.EB3, _CN): [
        "Sep 2020", "Sep 2020", "Oct 2020", "Nov 2020", "Nov 2020", "Dec 2020",
        "Jan 2021", "Jan 2021", "Feb 2021", "Mar 2021", "Mar 2021", "Apr 2021",
        "May 2021",
    ],
    (EBCategory.EB3, _ROW): [
        "Dec 2021", "Feb 2022", "Apr 2022", "Jun 2022", "Jul 2022", "Sep 2022",
        "Oct 2022", "Nov 2022", "Dec 2022", "Jan 2023", "Feb 2023", "Mar 2023",
        "Apr 2023",
    ],
}


def _build(category: EBCategory, chargeability: Chargeability, raw: list[str]) -> HistoricalBulletinSeries:
    series = HistoricalBulletinSeries(category=category, chargeability=chargeability)
    for offset, text in enumerate(raw):
        cutoff = parse_cutoff(text)
        if cutoff is None:
            raise ValueError(f"Unparseable history entry {text!r} for {category.label}")
        series = series.appended(
            BulletinSample(bulletin_month=FIRST_BULLETIN + offset, cutoff=cutoff)
        )
    return series


DEFAULT_BULLETIN_HISTORY: dict[tuple[EBCategory, Chargeability], HistoricalBulletinSeries] = {
    key: _build(key[0], key[1], raw) for key, raw in _RAW_HISTORY.items()
}
