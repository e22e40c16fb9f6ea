"""Date layouts written with readable placeholders.

Site descriptors describe how a date is printed on a page with placeholders
such as ``{DAY_NUM} {MONTH_LONG} {YEAR_LONG}`` instead of raw ``strptime``
directives. Placeholders are replaced once, when a site's crawler is built.
"""

from datetime import datetime

# Placeholder -> strptime directive. No placeholder is a prefix of another,
# so replacement order doesn't matter.
PLACEHOLDERS = {
    "{DAY_LONG}": "%A",
    "{DAY_SHORT}": "%a",
    "{DAY_NUM}": "%d",
    "{MONTH_LONG}": "%B",
    "{MONTH_SHORT}": "%b",
    "{MONTH_NUM}": "%m",
    "{YEAR_LONG}": "%Y",
    "{YEAR_SHORT}": "%y",
    "{HOURS}": "%H",
    "{MINUTES}": "%M",
    "{SECONDS}": "%S",
    "{ZONE_OFFSET}": "%z",
    "{ZONE_ABBREV}": "%Z",
}


def compile_layout(layout: str) -> str:
    """Translate a placeholder layout into a ``strptime`` format string.

    Every occurrence of every known placeholder is replaced. Anything else is
    left untouched, so a layout that is already a ``strptime`` format comes
    back unchanged.
    """
    for placeholder, directive in PLACEHOLDERS.items():
        layout = layout.replace(placeholder, directive)
    return layout


def parse_date(text: str, date_format: str) -> datetime:
    """Parse a scraped date with a compiled format.

    Raises:
        ValueError: If the text doesn't match the format.
    """
    return datetime.strptime(text, date_format)
