"""Heuristic formatting of drafted minutes for Google Docs.

Each line of the draft is matched against ``FORMAT_RULES`` in order and the
first matching rule decides its paragraph style. Offsets are Docs API indexes:
1-based and counted in UTF-16 code units.
"""

import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

MINUTES_HEADING = "議事録"
SECTION_HEADINGS = ("【議題】", "【議事内容】", "【結論】")

_LABEL_LINE = re.compile(r"^(日時|場所|参加者)[:：]")
_NUMBERED_LINE = re.compile(r"^[0-9０-９]+[.．]")


@dataclass(frozen=True)
class FormatRule:
    """Predicate on ``(line_index, line, company_name)`` plus its style."""

    name: str
    matches: Callable[[int, str, str], bool]
    named_style: Optional[str] = None
    bold: bool = False
    centered: bool = False


@dataclass(frozen=True)
class FormatRange:
    start: int
    end: int
    rule: str
    named_style: Optional[str] = None
    bold: bool = False
    centered: bool = False


FORMAT_RULES: List[FormatRule] = [
    FormatRule(
        name="title",
        matches=lambda index, line, company: (
            index == 0 and bool(company) and line.startswith(company)
        ),
        named_style="HEADING_1",
        bold=True,
        centered=True,
    ),
    FormatRule(
        name="subtitle",
        matches=lambda index, line, company: index == 1 and line.strip() == MINUTES_HEADING,
        named_style="HEADING_2",
        bold=True,
        centered=True,
    ),
    FormatRule(
        name="section",
        matches=lambda index, line, company: line.startswith(SECTION_HEADINGS),
        named_style="HEADING_3",
        bold=True,
    ),
    FormatRule(
        name="label",
        matches=lambda index, line, company: bool(_LABEL_LINE.match(line)),
        bold=True,
    ),
    FormatRule(
        name="numbered",
        matches=lambda index, line, company: bool(_NUMBERED_LINE.match(line)),
        bold=True,
    ),
]


def utf16_length(text: str) -> int:
    """Length of ``text`` as the Docs API counts it."""
    return len(text.encode("utf-16-le")) // 2


def match_rule(
    index: int, line: str, company_name: str, rules: List[FormatRule] = FORMAT_RULES
) -> Optional[FormatRule]:
    for rule in rules:
        if rule.matches(index, line, company_name):
            return rule
    return None


def compute_format_ranges(
    text: str, company_name: str, start_index: int = 1
) -> List[FormatRange]:
    """Style ranges for ``text`` inserted at ``start_index`` of a document.

    A range spans its line without the trailing newline. Empty lines never
    produce a range.
    """
    ranges = []
    offset = start_index

    for index, line in enumerate(text.split("\n")):
        length = utf16_length(line)

        if line:
            rule = match_rule(index, line, company_name)
            if rule:
                ranges.append(
                    FormatRange(
                        start=offset,
                        end=offset + length,
                        rule=rule.name,
                        named_style=rule.named_style,
                        bold=rule.bold,
                        centered=rule.centered,
                    )
                )

        # Newline is one code unit
        offset += length + 1

    return ranges


def build_format_requests(ranges: List[FormatRange]) -> List[Dict[str, Any]]:
    """Docs ``batchUpdate`` requests applying ``ranges``."""
    requests = []

    for format_range in ranges:
        doc_range = {"startIndex": format_range.start, "endIndex": format_range.end}

        paragraph_style: Dict[str, Any] = {}
        if format_range.named_style:
            paragraph_style["namedStyleType"] = format_range.named_style
        if format_range.centered:
            paragraph_style["alignment"] = "CENTER"

        if paragraph_style:
            requests.append(
                {
                    "updateParagraphStyle": {
                        "range": doc_range,
                        "paragraphStyle": paragraph_style,
                        "fields": ",".join(paragraph_style),
                    }
                }
            )

        if format_range.bold:
            requests.append(
                {
                    "updateTextStyle": {
                        "range": doc_range,
                        "textStyle": {"bold": True},
                        "fields": "bold",
                    }
                }
            )

    return requests
