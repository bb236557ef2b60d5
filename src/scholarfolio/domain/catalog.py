# src/scholarfolio/domain/catalog.py
"""
Cached catalog domain models.

Rows derived from OpenAlex records, keyed by the researcher's catalog id:
- TopicRow: one research topic of a researcher
- AffiliationRow: one institution with its year range
- PublicationRow: one work, with denormalized author names
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class CatalogDataType(str, Enum):
    """Kinds of raw upstream payloads kept as cached blobs."""

    RESEARCHER = "researcher"
    WORKS = "works"


class CollectionKind(str, Enum):
    """Relational collections replaced wholesale on every sync."""

    TOPICS = "topics"
    AFFILIATIONS = "affiliations"
    PUBLICATIONS = "publications"


@dataclass
class TopicRow:
    catalog_id: str
    topic_id: str
    display_name: str
    count: int = 0
    subfield: Optional[str] = None
    field: Optional[str] = None
    domain: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "catalog_id": self.catalog_id,
            "topic_id": self.topic_id,
            "display_name": self.display_name,
            "count": self.count,
            "subfield": self.subfield,
            "field": self.field,
            "domain": self.domain,
        }


@dataclass
class AffiliationRow:
    catalog_id: str
    institution_id: str
    institution_name: str
    institution_type: Optional[str] = None
    country_code: Optional[str] = None
    years: List[int] = field(default_factory=list)
    start_year: Optional[int] = None
    end_year: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "catalog_id": self.catalog_id,
            "institution_id": self.institution_id,
            "institution_name": self.institution_name,
            "institution_type": self.institution_type,
            "country_code": self.country_code,
            "years": list(self.years),
            "start_year": self.start_year,
            "end_year": self.end_year,
        }


@dataclass
class PublicationRow:
    catalog_id: str
    work_id: str
    title: str
    author_names: str = ""
    journal: Optional[str] = None
    publication_year: Optional[int] = None
    citation_count: int = 0
    topics: List[str] = field(default_factory=list)
    doi: Optional[str] = None
    is_open_access: bool = False
    publication_type: Optional[str] = None
    is_review_article: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "catalog_id": self.catalog_id,
            "work_id": self.work_id,
            "title": self.title,
            "author_names": self.author_names,
            "journal": self.journal,
            "publication_year": self.publication_year,
            "citation_count": self.citation_count,
            "topics": list(self.topics),
            "doi": self.doi,
            "is_open_access": self.is_open_access,
            "publication_type": self.publication_type,
            "is_review_article": self.is_review_article,
        }
