"""Web-search style text predicate rendered per dialect."""

from sqlalchemy import Boolean, Text, and_, func, literal
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.sql.expression import ColumnElement

SEARCH_CONFIG = "simple"


class WebSearchMatch(ColumnElement):
    type = Boolean()
    inherit_cache = False

    def __init__(self, column, query: str):
        self.column = column
        self.query = query


def search_match(column, query: str) -> WebSearchMatch:
    return WebSearchMatch(column, query.strip())


@compiles(WebSearchMatch, "postgresql")
def _compile_postgresql(element: WebSearchMatch, compiler, **kw) -> str:
    clause = func.to_tsvector(SEARCH_CONFIG, element.column).op("@@")(
        func.websearch_to_tsquery(SEARCH_CONFIG, literal(element.query))
    )
    return compiler.process(clause, **kw)


@compiles(WebSearchMatch)
def _compile_default(element: WebSearchMatch, compiler, **kw) -> str:
    # every term must appear somewhere in the token, case-insensitively
    token = func.lower(func.coalesce(element.column, ""), type_=Text)
    terms = [term.lower() for term in element.query.split()]
    clause = and_(*[token.contains(term, autoescape=True) for term in terms])
    return compiler.process(clause, **kw)
