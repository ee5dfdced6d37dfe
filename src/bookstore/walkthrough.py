from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Sequence

from rich.console import Console
from rich.rule import Rule

from bookstore.books import (
    render_books_table,
    render_explain_table,
    render_group_table,
    render_write_summary,
    summarize_explain,
)
from bookstore.mongo_api import BookstoreClient
from bookstore.queries import (
    AUTHOR_YEAR_INDEX,
    TITLE_AUTHOR_PRICE,
    TITLE_INDEX,
    TITLE_PRICE,
    author_filter,
    author_since_filter,
    average_price_by_genre_pipeline,
    books_by_decade_pipeline,
    combine_filters,
    genre_filter,
    in_stock_filter,
    page_window,
    parse_sort,
    price_update,
    published_after_filter,
    title_filter,
    top_authors_pipeline,
)

SECTIONS = ("crud", "examples", "advanced", "aggregation", "indexing")
CLOSING_MESSAGE = "All queries executed. Review printed sections and results above."


@dataclass(frozen=True, slots=True)
class Step:
    section: str
    heading: str
    kind: str
    run: Callable[[BookstoreClient], Any]
    key_label: str = ""


def _find(query: dict[str, Any], **kwargs: Any) -> Callable[[BookstoreClient], Any]:
    return lambda client: client.find_books(query, **kwargs)


def build_steps(*, page: int = 2, page_size: int = 5) -> list[Step]:
    skip, limit = page_window(page, page_size)
    return [
        Step("crud", "Find: books in Science Fiction", "books", _find(genre_filter("Science Fiction"))),
        Step("crud", "Find: books published after 2015", "books", _find(published_after_filter(2015))),
        Step("crud", "Find: books by James Clear", "books", _find(author_filter("James Clear"))),
        Step(
            "crud",
            "Update: set price of Dune to 17.99",
            "write",
            lambda client: client.update_one(title_filter("Dune"), price_update(17.99)),
        ),
        Step(
            "crud",
            "Delete: book with title Deep Work",
            "write",
            lambda client: client.delete_one(title_filter("Deep Work")),
        ),
        Step("examples", "Examples: Find all books", "books", _find({})),
        Step("examples", "Examples: Find books by author George Orwell", "books", _find(author_filter("George Orwell"))),
        Step("examples", "Examples: Find books published after 1950", "books", _find(published_after_filter(1950))),
        Step("examples", "Examples: Find books in genre Fiction", "books", _find(genre_filter("Fiction"))),
        Step("examples", "Examples: Find in-stock books", "books", _find(in_stock_filter())),
        Step(
            "advanced",
            "Advanced: in stock and published after 2010",
            "books",
            _find(combine_filters(in_stock_filter(), published_after_filter(2010))),
        ),
        Step("advanced", "Projection: title, author, price only", "books", _find({}, projection=TITLE_AUTHOR_PRICE)),
        Step("advanced", "Sort: price ascending", "books", _find({}, projection=TITLE_PRICE, sort=parse_sort("price"))),
        Step("advanced", "Sort: price descending", "books", _find({}, projection=TITLE_PRICE, sort=parse_sort("-price"))),
        Step(
            "advanced",
            f"Pagination: page {page} (limit {limit}, skip {skip})",
            "books",
            _find({}, projection=TITLE_AUTHOR_PRICE, sort=parse_sort("title"), skip=skip, limit=limit),
        ),
        Step(
            "aggregation",
            "Aggregation: average price by genre",
            "groups",
            lambda client: client.aggregate(average_price_by_genre_pipeline()),
            key_label="genre",
        ),
        Step(
            "aggregation",
            "Aggregation: author with most books",
            "groups",
            lambda client: client.aggregate(top_authors_pipeline(1)),
            key_label="author",
        ),
        Step(
            "aggregation",
            "Aggregation: books by decade",
            "groups",
            lambda client: client.aggregate(books_by_decade_pipeline()),
            key_label="decade",
        ),
        Step(
            "indexing",
            "Index: create on title",
            "index",
            lambda client: client.create_index(TITLE_INDEX.keys, name=TITLE_INDEX.name),
        ),
        Step(
            "indexing",
            "Index: create compound on author + published_year",
            "index",
            lambda client: client.create_index(AUTHOR_YEAR_INDEX.keys, name=AUTHOR_YEAR_INDEX.name),
        ),
        Step(
            "indexing",
            "Explain: find by title",
            "explain",
            lambda client: client.explain_find(title_filter("Dune")),
        ),
        Step(
            "indexing",
            "Explain: find by author/year",
            "explain",
            lambda client: client.explain_find(author_since_filter("Andy Weir", 2000)),
        ),
    ]


def select_steps(steps: Sequence[Step], sections: Sequence[str] | None) -> list[Step]:
    if not sections:
        return list(steps)
    wanted = {section.strip().lower() for section in sections}
    unknown = wanted.difference(SECTIONS)
    if unknown:
        raise ValueError(
            f"Unknown section(s): {', '.join(sorted(unknown))}. Choose from: {', '.join(SECTIONS)}."
        )
    return [step for step in steps if step.section in wanted]


def render_step_result(console: Console, step: Step, result: Any) -> None:
    if step.kind == "books":
        console.print(render_books_table(result, title=None))
    elif step.kind == "groups":
        console.print(render_group_table(result, title=None, key_label=step.key_label))
    elif step.kind == "write":
        console.print(render_write_summary(result))
    elif step.kind == "index":
        console.print(f"[green]Index ready:[/green] {result}")
    elif step.kind == "explain":
        console.print(render_explain_table(summarize_explain(result), title=None))
    else:
        console.print(result)


def run_walkthrough(
    client: BookstoreClient,
    console: Console,
    steps: Sequence[Step],
) -> int:
    """Run each step in order, printing its heading and result. Returns the count run."""
    current_section: str | None = None
    for step in steps:
        if step.section != current_section:
            current_section = step.section
            console.print(Rule(current_section.title()))
        console.print()
        console.print(f"[bold]{step.heading}[/bold]")
        render_step_result(console, step, step.run(client))

    console.print()
    console.print(f"[green]{CLOSING_MESSAGE}[/green]")
    return len(steps)
