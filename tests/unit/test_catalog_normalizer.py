from __future__ import annotations

from scholarfolio.application.services.catalog_normalizer import (
    MAX_PUBLICATION_TOPICS,
    UNTITLED,
    affiliation_year_range,
    build_affiliation_rows,
    build_publication_rows,
    build_topic_rows,
    clean_title,
    publication_type_code,
)

RESEARCHER = {
    "id": "https://openalex.org/A5023888391",
    "display_name": "Jane Doe",
    "topics": [
        {
            "id": "https://openalex.org/T10001",
            "display_name": "Protein Folding",
            "count": 42,
            "subfield": {"display_name": "Molecular Biology"},
            "field": {"display_name": "Biochemistry"},
            "domain": {"display_name": "Life Sciences"},
        },
        {"id": "https://openalex.org/T10002", "display_name": "Cryo-EM", "count": "7"},
    ],
    "affiliations": [
        {
            "institution": {
                "id": "https://openalex.org/I1",
                "display_name": "University of Somewhere",
                "type": "education",
                "country_code": "GB",
            },
            "years": [2019, 2015, 2017],
        },
        {"institution": {"id": "https://openalex.org/I2", "display_name": "Lab"}, "years": []},
    ],
}


def test_clean_title_strips_tags_and_entities():
    assert clean_title("<i>Foo</i> &amp; Bar &unknown;") == "Foo & Bar"


def test_clean_title_decodes_common_entities_once():
    assert clean_title("a &lt;b&gt; &quot;c&quot;") == 'a <b> "c"'
    assert clean_title("x &amp;lt; y") == "x &lt; y"
    assert clean_title("caf&#233; &nbsp; au lait") == "caf au lait"


def test_clean_title_empty_becomes_placeholder():
    assert clean_title("") == UNTITLED
    assert clean_title(None) == UNTITLED
    assert clean_title("<b> </b>") == UNTITLED


def test_clean_title_collapses_whitespace():
    assert clean_title("  A\n  study\tof  <sub>x</sub> ") == "A study of x"


def test_publication_type_code():
    assert publication_type_code("https://openalex.org/types/article") == "article"
    assert publication_type_code("review") == "review"
    assert publication_type_code(None) is None
    assert publication_type_code("") is None


def test_affiliation_year_range_handles_unsorted_and_empty():
    assert affiliation_year_range([2019, 2015, 2017]) == (2015, 2019)
    assert affiliation_year_range([]) == (None, None)


def test_build_topic_rows_flattens_hierarchy():
    rows = build_topic_rows("A5023888391", RESEARCHER)

    assert len(rows) == 2
    assert rows[0].catalog_id == "A5023888391"
    assert rows[0].display_name == "Protein Folding"
    assert rows[0].count == 42
    assert rows[0].subfield == "Molecular Biology"
    assert rows[0].field == "Biochemistry"
    assert rows[0].domain == "Life Sciences"
    assert rows[1].count == 7
    assert rows[1].subfield is None


def test_build_affiliation_rows_computes_year_span():
    rows = build_affiliation_rows("A5023888391", RESEARCHER)

    assert rows[0].institution_name == "University of Somewhere"
    assert rows[0].institution_type == "education"
    assert rows[0].country_code == "GB"
    assert rows[0].years == [2015, 2017, 2019]
    assert (rows[0].start_year, rows[0].end_year) == (2015, 2019)
    assert (rows[1].start_year, rows[1].end_year) == (None, None)


def test_build_publication_rows_denormalizes_work():
    work = {
        "id": "https://openalex.org/W1",
        "title": "<i>Deep</i> Folding",
        "publication_year": 2021,
        "cited_by_count": 120,
        "doi": "https://doi.org/10.1/abc",
        "open_access": {"is_oa": True},
        "primary_location": {"source": {"display_name": "Nature"}},
        "type": "https://openalex.org/types/review",
        "authorships": [
            {"author": {"display_name": "Jane Doe"}},
            {"author": {"display_name": "John Roe"}},
            {"author": {}},
        ],
        "topics": [{"display_name": f"T{i}"} for i in range(8)],
    }

    [row] = build_publication_rows("A5023888391", [work])

    assert row.title == "Deep Folding"
    assert row.author_names == "Jane Doe, John Roe"
    assert row.journal == "Nature"
    assert row.citation_count == 120
    assert row.is_open_access is True
    assert row.publication_type == "review"
    assert row.is_review_article is True
    assert row.topics == [f"T{i}" for i in range(MAX_PUBLICATION_TOPICS)]


def test_build_publication_rows_tolerates_sparse_work():
    [row] = build_publication_rows("A1", [{"id": "https://openalex.org/W2", "title": None}])

    assert row.title == UNTITLED
    assert row.author_names == ""
    assert row.journal is None
    assert row.doi is None
    assert row.is_open_access is False
    assert row.publication_type is None
    assert row.is_review_article is False
