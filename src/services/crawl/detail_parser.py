"""Heuristic parser for gov.kr benefit detail pages.

The detail pages are server-rendered HTML without stable ids or classes,
so every section is located by the Korean heading/label text next to it.
Each section parser is independent: a page missing one section still
yields the others.
"""

from __future__ import annotations

import re
from datetime import UTC, datetime

import structlog
from bs4 import BeautifulSoup, Tag

from src.models.detail import ContactInfo, CrawlDetail, DetailDocuments, LegalBasis

logger = structlog.get_logger(__name__)

# ---------------------------------------------------------------------------
# Markers and patterns
# ---------------------------------------------------------------------------

_REQUIRED_DOC_MARKERS = ("민원인이 제출해야하는 서류", "구비서류")
_OPTIONAL_DOC_MARKER = "민원인이 제출하지 않아도"
_NOT_APPLICABLE = "해당없음"
_DOC_SPLIT_RE = re.compile(r"[-\n]")
_MIN_DOC_NAME_LENGTH = 3

_DUPLICATE_MARKERS = ("중복혜택 안돼요", "중복수혜 불가")
_DUPLICATE_HEADING_RE = re.compile(r"(?:보육료|양육수당|다른\s*복지)[^.]*중복[^.]*")
_DUPLICATE_PAGE_RE = re.compile(
    r"([가-힣 \t,]+(?:와|과|,\s*)\s*중복(?:수혜|지원|혜택)\s*불가)"
)

_LAW_MARKER = "[법령]"
_LAW_RE = re.compile(r"\[법령\]\s*([^(]+)\(([^)]+)\)")

_AGENCY_LABEL = "접수기관"
_PHONE_RE = re.compile(r"\d{2,4}-\d{3,4}-\d{4}")
MAX_PHONES = 5


# ---------------------------------------------------------------------------
# Section parsers
# ---------------------------------------------------------------------------


def _split_documents(pre: Tag | None) -> list[str]:
    if pre is None:
        return []
    content = pre.get_text().strip()
    if not content or content == _NOT_APPLICABLE:
        return []
    names = (line.strip() for line in _DOC_SPLIT_RE.split(content))
    return [name for name in names if len(name) >= _MIN_DOC_NAME_LENGTH]


def parse_documents(soup: BeautifulSoup) -> DetailDocuments:
    required: list[str] = []
    optional: list[str] = []

    for heading in soup.find_all(["h3", "h4", "strong"]):
        text = heading.get_text().strip()
        if any(marker in text for marker in _REQUIRED_DOC_MARKERS):
            required.extend(_split_documents(heading.find_next_sibling("pre")))
        if _OPTIONAL_DOC_MARKER in text:
            optional.extend(_split_documents(heading.find_next_sibling("pre")))

    # Nested headings (<h4><strong>..</strong></h4>) match twice.
    return DetailDocuments(
        required=list(dict.fromkeys(required)),
        optional=list(dict.fromkeys(optional)),
    )


def parse_duplicate_warning(soup: BeautifulSoup) -> str | None:
    """Warning about benefits that cannot be combined with this one."""
    for element in soup.find_all(["h3", "h4", "strong", "p"]):
        text = element.get_text().strip()
        if not any(marker in text for marker in _DUPLICATE_MARKERS):
            continue

        parent = element.parent
        paragraph = parent.find("p") if isinstance(parent, Tag) else None
        if paragraph is not None:
            warning = paragraph.get_text().strip()
            return warning or None
        match = _DUPLICATE_HEADING_RE.search(text)
        if match:
            return match.group(0).strip()
        break

    match = _DUPLICATE_PAGE_RE.search(soup.get_text("\n"))
    if match:
        return match.group(1).strip()
    return None


def parse_legal_basis(soup: BeautifulSoup) -> list[LegalBasis]:
    basis: list[LegalBasis] = []
    for item in soup.find_all("li"):
        text = item.get_text().strip()
        if _LAW_MARKER not in text:
            continue
        match = _LAW_RE.search(text)
        if match:
            basis.append(
                LegalBasis(name=match.group(1).strip(), article=match.group(2).strip())
            )
    return basis


def parse_contact(soup: BeautifulSoup) -> ContactInfo:
    """Receiving agency after its label, plus phone numbers page-wide."""
    agency = ""
    for label in soup.find_all(string=re.compile(_AGENCY_LABEL)):
        node = label.parent
        while isinstance(node, Tag):
            sibling = node.find_next_sibling()
            if sibling is not None:
                agency = sibling.get_text().strip()
                break
            node = node.parent

    phones = list(dict.fromkeys(_PHONE_RE.findall(soup.get_text("\n"))))
    return ContactInfo(agency=agency, phone=phones[:MAX_PHONES])


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def parse_detail_page(html: str, *, now: str | None = None) -> CrawlDetail | None:
    """Parse one detail page.

    Returns ``None`` when the markup yields no recognisable section at all,
    which callers treat as a parse failure.
    """
    if not html or not html.strip():
        return None

    soup = BeautifulSoup(html, "html.parser")

    documents = parse_documents(soup)
    warning = parse_duplicate_warning(soup)
    legal_basis = parse_legal_basis(soup)
    contact = parse_contact(soup)

    if not (
        documents.required
        or documents.optional
        or warning
        or legal_basis
        or contact.agency
        or contact.phone
    ):
        logger.debug("detail_parser.no_sections")
        return None

    return CrawlDetail(
        documents=documents,
        duplicate_warning=warning,
        legal_basis=legal_basis,
        contact=contact,
        last_crawled=now or datetime.now(UTC).isoformat(),
    )
