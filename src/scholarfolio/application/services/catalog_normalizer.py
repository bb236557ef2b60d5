# src/scholarfolio/application/services/catalog_normalizer.py
"""
Catalog normalizer.

Pure transforms from raw OpenAlex records into the relational rows cached per
researcher. No I/O happens here.
"""

from __future__ import annotations

import re
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from scholarfolio.domain.catalog import AffiliationRow, PublicationRow, TopicRow

UNTITLED = "Untitled"
MAX_PUBLICATION_TOPICS = 5
REVIEW_TYPE = "review"

_TAG_RE = re.compile(r"<[^>]*>")
_ENTITY_RE = re.compile(r"&(#[0-9]+|#[xX][0-9a-fA-F]+|[a-zA-Z][a-zA-Z0-9]*);")
_WHITESPACE_RE = re.compile(r"\s+")
_KNOWN_ENTITIES = {"lt": "<", "gt": ">", "amp": "&", "quot": '"'}


def _decode_entity(match: "re.Match[str]") -> str:
    # Anything other than the four common entities is dropped
    return _KNOWN_ENTITIES.get(match.group(1), "")


def clean_title(raw: Optional[str]) -> str:
    """
    Strip markup from a work title.

    Tags are removed, ``&lt; &gt; &amp; &quot;`` are decoded, any other entity is
    dropped and whitespace is collapsed. Entities are decoded in a single pass so
    ``&amp;lt;`` becomes the literal text ``&lt;``.
    """
    if not raw:
        return UNTITLED
    text = _TAG_RE.sub("", str(raw))
    text = _ENTITY_RE.sub(_decode_entity, text)
    text = _WHITESPACE_RE.sub(" ", text).strip()
    return text or UNTITLED


def publication_type_code(type_uri: Optional[str]) -> Optional[str]:
    """``https://openalex.org/types/article`` -> ``article``."""
    text = str(type_uri or "").strip().rstrip("/")
    if not text:
        return None
    return text.rsplit("/", 1)[-1] or None


def affiliation_year_range(years: Iterable[Any]) -> Tuple[Optional[int], Optional[int]]:
    """Return (start, end) of an unsorted list of years."""
    ordered = sorted(_int_years(years))
    if not ordered:
        return None, None
    return ordered[0], ordered[-1]


def build_topic_rows(catalog_id: str, researcher: Dict[str, Any]) -> List[TopicRow]:
    rows: List[TopicRow] = []
    for topic in researcher.get("topics") or []:
        if not isinstance(topic, dict):
            continue
        rows.append(
            TopicRow(
                catalog_id=catalog_id,
                topic_id=str(topic.get("id") or ""),
                display_name=str(topic.get("display_name") or ""),
                count=_safe_int(topic.get("count")),
                subfield=_nested_name(topic, "subfield"),
                field=_nested_name(topic, "field"),
                domain=_nested_name(topic, "domain"),
            )
        )
    return rows


def build_affiliation_rows(catalog_id: str, researcher: Dict[str, Any]) -> List[AffiliationRow]:
    rows: List[AffiliationRow] = []
    for affiliation in researcher.get("affiliations") or []:
        if not isinstance(affiliation, dict):
            continue
        institution = affiliation.get("institution") or {}
        years = sorted(_int_years(affiliation.get("years") or []))
        start_year, end_year = affiliation_year_range(years)
        rows.append(
            AffiliationRow(
                catalog_id=catalog_id,
                institution_id=str(institution.get("id") or ""),
                institution_name=str(institution.get("display_name") or ""),
                institution_type=institution.get("type"),
                country_code=institution.get("country_code"),
                years=years,
                start_year=start_year,
                end_year=end_year,
            )
        )
    return rows


def build_publication_rows(catalog_id: str, works: Sequence[Dict[str, Any]]) -> List[PublicationRow]:
    rows: List[PublicationRow] = []
    for work in works or []:
        if not isinstance(work, dict):
            continue

        authors = []
        for authorship in work.get("authorships") or []:
            author = (authorship or {}).get("author") or {}
            if author.get("display_name"):
                authors.append(author["display_name"])

        journal = None
        if work.get("primary_location"):
            source = work["primary_location"].get("source") or {}
            journal = source.get("display_name")

        topics = [
            t.get("display_name", "")
            for t in (work.get("topics") or [])[:MAX_PUBLICATION_TOPICS]
            if isinstance(t, dict) and t.get("display_name")
        ]

        type_code = publication_type_code(work.get("type"))
        rows.append(
            PublicationRow(
                catalog_id=catalog_id,
                work_id=str(work.get("id") or ""),
                title=clean_title(work.get("title") or work.get("display_name")),
                author_names=", ".join(authors),
                journal=journal,
                publication_year=work.get("publication_year"),
                citation_count=_safe_int(work.get("cited_by_count")),
                topics=topics,
                doi=work.get("doi") or None,
                is_open_access=bool((work.get("open_access") or {}).get("is_oa")),
                publication_type=type_code,
                is_review_article=type_code == REVIEW_TYPE,
            )
        )
    return rows


def _nested_name(obj: Dict[str, Any], key: str) -> Optional[str]:
    nested = obj.get(key)
    if isinstance(nested, dict):
        return nested.get("display_name")
    return None


def _int_years(values: Iterable[Any]) -> List[int]:
    years: List[int] = []
    for value in values or []:
        try:
            years.append(int(value))
        except (TypeError, ValueError):
            continue
    return years


def _safe_int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default
