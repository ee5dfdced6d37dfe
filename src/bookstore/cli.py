from __future__ import annotations

from typing import Any, Callable

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from bookstore.books import (
    documents_to_json,
    render_books_table,
    render_explain_table,
    render_group_table,
    render_indexes_table,
    render_write_summary,
    summarize_explain,
)
from bookstore.config import (
    AppConfig,
    ConfigError,
    ConnectionSettings,
    URI_ENV_VAR,
    load_config,
    mask_uri,
    resolve_connection,
    set_collection,
    set_database,
    set_mongo_uri,
    set_page_size,
)
from bookstore.mongo_api import Book, BookstoreClient, BookstoreConnectionError, BookstoreError
from bookstore.queries import (
    EXAMPLE_INDEXES,
    SORT_FIELDS,
    TITLE_AUTHOR_PRICE,
    author_since_filter,
    average_price_by_genre_pipeline,
    books_by_decade_pipeline,
    build_book_filter,
    page_window,
    parse_sort,
    price_update,
    title_filter,
    top_authors_pipeline,
)
from bookstore.sample_data import REFACTORING, seed_books
from bookstore.walkthrough import SECTIONS, build_steps, run_walkthrough, select_steps

app = typer.Typer(help="MongoDB bookstore query walkthrough")
config_app = typer.Typer(help="Manage local bookstorectl config")
books_app = typer.Typer(help="Find, add, update and delete books")
stats_app = typer.Typer(help="Aggregation pipelines over the books collection")
index_app = typer.Typer(help="Create and inspect indexes")

app.add_typer(config_app, name="config")
app.add_typer(books_app, name="books")
app.add_typer(stats_app, name="stats")
app.add_typer(index_app, name="index")

console = Console()

URI_OPTION_HELP = f"MongoDB connection URI override (or set {URI_ENV_VAR})."


def _fail(message: str, *, code: int = 1) -> None:
    console.print(f"[red]{escape(message)}[/red]")
    raise typer.Exit(code=code)


def _load_config_or_fail() -> AppConfig:
    try:
        return load_config()
    except ConfigError as exc:
        _fail(str(exc))
    raise AssertionError("unreachable")


def _resolve_settings_or_fail(
    cfg: AppConfig,
    uri: str | None,
    database: str | None,
    collection: str | None,
) -> ConnectionSettings:
    try:
        return resolve_connection(
            cfg,
            uri_override=uri,
            database_override=database,
            collection_override=collection,
        )
    except ConfigError as exc:
        _fail(str(exc))
    raise AssertionError("unreachable")


def _run_with_client(
    settings: ConnectionSettings,
    action: Callable[[BookstoreClient], int | None],
) -> int | None:
    try:
        with BookstoreClient.from_settings(settings) as client:
            return action(client)
    except BookstoreConnectionError as exc:
        _fail(
            f"{exc}\nCheck that MongoDB is running at {mask_uri(settings.uri)} "
            f"or pass --uri / set {URI_ENV_VAR}."
        )
    except BookstoreError as exc:
        _fail(str(exc))
    raise AssertionError("unreachable")


def _settings_for(
    uri: str | None,
    database: str | None,
    collection: str | None,
) -> ConnectionSettings:
    cfg = _load_config_or_fail()
    return _resolve_settings_or_fail(cfg, uri, database, collection)


def _render_config_table(cfg: AppConfig) -> Table:
    table = Table(title="bookstorectl Config")
    table.add_column("Key", style="cyan")
    table.add_column("Value")
    table.add_row("mongo_uri", mask_uri(cfg.mongo_uri) if cfg.mongo_uri else "")
    table.add_row("database", cfg.database)
    table.add_row("collection", cfg.collection)
    table.add_row("page_size", str(cfg.page_size))
    table.add_row("timeout_ms", str(cfg.timeout_ms))
    try:
        settings = resolve_connection(cfg)
    except ConfigError as exc:
        table.add_row("effective_uri", f"invalid ({exc})")
    else:
        table.add_row("effective_uri", f"{mask_uri(settings.uri)} ({settings.uri_source})")
    return table


def _uri_option() -> Any:
    return typer.Option(None, "--uri", help=URI_OPTION_HELP)


def _database_option() -> Any:
    return typer.Option(None, "--database", "--db", help="Database name override.")


def _collection_option() -> Any:
    return typer.Option(None, "--collection", help="Collection name override.")


def _json_option() -> Any:
    return typer.Option(False, "--json", help="Emit JSON output.")


@config_app.command("set-uri")
def config_set_uri(uri: str) -> None:
    """Persist the default MongoDB connection URI."""
    try:
        cfg = set_mongo_uri(uri)
    except ConfigError as exc:
        _fail(str(exc))
    console.print(f"[green]Saved mongo_uri:[/green] {mask_uri(cfg.mongo_uri or '')}")


@config_app.command("set-database")
def config_set_database(name: str) -> None:
    """Persist the default database name."""
    try:
        cfg = set_database(name)
    except ConfigError as exc:
        _fail(str(exc))
    console.print(f"[green]Saved database:[/green] {cfg.database}")


@config_app.command("set-collection")
def config_set_collection(name: str) -> None:
    """Persist the default collection name."""
    try:
        cfg = set_collection(name)
    except ConfigError as exc:
        _fail(str(exc))
    console.print(f"[green]Saved collection:[/green] {cfg.collection}")


@config_app.command("set-page-size")
def config_set_page_size(size: int) -> None:
    """Persist the default page size for paginated listings."""
    try:
        cfg = set_page_size(size)
    except ConfigError as exc:
        _fail(str(exc))
    console.print(f"[green]Saved page_size:[/green] {cfg.page_size}")


@config_app.command("show")
def config_show() -> None:
    """Show effective local config."""
    cfg = _load_config_or_fail()
    console.print(_render_config_table(cfg))


@app.command("test")
def connectivity_test(
    uri: str | None = _uri_option(),
    database: str | None = _database_option(),
    collection: str | None = _collection_option(),
) -> None:
    """Ping MongoDB and report the server version and book count."""
    settings = _settings_for(uri, database, collection)

    def action(client: BookstoreClient) -> int:
        client.ping()
        version = client.server_version()
        count = client.count_books()
        table = Table(title="MongoDB connectivity test")
        table.add_column("Check", style="cyan")
        table.add_column("Result", style="green")
        table.add_row("URI", f"{mask_uri(settings.uri)} ({settings.uri_source})")
        table.add_row("Ping", "OK")
        table.add_row("Server version", version)
        table.add_row("Namespace", f"{settings.database}.{settings.collection}")
        table.add_row("Books", str(count))
        console.print(table)
        console.print("[green]Connectivity test passed.[/green]")
        return 0

    _run_with_client(settings, action)


@app.command("seed")
def seed(
    drop: bool = typer.Option(False, "--drop", help="Drop the collection before inserting."),
    uri: str | None = _uri_option(),
    database: str | None = _database_option(),
    collection: str | None = _collection_option(),
) -> None:
    """Insert the bundled sample books."""
    settings = _settings_for(uri, database, collection)

    def action(client: BookstoreClient) -> int:
        summary = seed_books(client, drop=drop)
        if drop:
            console.print(f"[yellow]Dropped {settings.database}.{settings.collection}.[/yellow]")
        console.print(f"[green]{render_write_summary(summary)}[/green]")
        return 0

    _run_with_client(settings, action)


@books_app.command("find")
def books_find(
    genre: str | None = typer.Option(None, "--genre", "-g", help="Exact genre match."),
    author: str | None = typer.Option(None, "--author", "-a", help="Exact author match."),
    title: str | None = typer.Option(None, "--title", "-t", help="Exact title match."),
    published_after: int | None = typer.Option(
        None, "--published-after", help="Only books published after this year."
    ),
    in_stock: bool | None = typer.Option(
        None, "--in-stock/--out-of-stock", help="Filter by stock status."
    ),
    json_output: bool = _json_option(),
    uri: str | None = _uri_option(),
    database: str | None = _database_option(),
    collection: str | None = _collection_option(),
) -> None:
    """Find books matching every given filter."""
    settings = _settings_for(uri, database, collection)
    query = build_book_filter(
        genre=genre,
        author=author,
        title=title,
        published_after=published_after,
        in_stock=in_stock,
    )

    def action(client: BookstoreClient) -> int:
        documents = client.find_books(query)
        if json_output:
            console.print_json(documents_to_json(documents))
        elif not documents:
            console.print("[yellow]No books matched.[/yellow]")
        else:
            console.print(render_books_table(documents))
        return 0

    _run_with_client(settings, action)


@books_app.command("list")
def books_list(
    sort: str = typer.Option(
        "title", "--sort", help=f"Sort order: {', '.join(SORT_FIELDS)}."
    ),
    page: int = typer.Option(1, "--page", help="1-based page number."),
    page_size: int | None = typer.Option(
        None, "--page-size", help="Books per page. Defaults to configured value (5)."
    ),
    brief: bool = typer.Option(False, "--brief", help="Only show title, author and price."),
    json_output: bool = _json_option(),
    uri: str | None = _uri_option(),
    database: str | None = _database_option(),
    collection: str | None = _collection_option(),
) -> None:
    """List one page of books in a chosen sort order."""
    cfg = _load_config_or_fail()
    settings = _resolve_settings_or_fail(cfg, uri, database, collection)
    try:
        sort_spec = parse_sort(sort)
        skip, limit = page_window(page, page_size if page_size is not None else cfg.page_size)
    except ValueError as exc:
        _fail(str(exc))

    def action(client: BookstoreClient) -> int:
        documents = client.find_books(
            {},
            projection=TITLE_AUTHOR_PRICE if brief else None,
            sort=sort_spec,
            skip=skip,
            limit=limit,
        )
        if json_output:
            console.print_json(documents_to_json(documents))
        else:
            title = f"Books page {page} (limit {limit}, skip {skip})"
            console.print(render_books_table(documents, title=title))
        return 0

    _run_with_client(settings, action)


@books_app.command("add")
def books_add(
    title: str = typer.Option(REFACTORING.title, "--title"),
    author: str = typer.Option(REFACTORING.author, "--author"),
    genre: str = typer.Option(REFACTORING.genre, "--genre"),
    published_year: int = typer.Option(REFACTORING.published_year, "--published-year"),
    price: float = typer.Option(REFACTORING.price, "--price", min=0),
    in_stock: bool = typer.Option(REFACTORING.in_stock, "--in-stock/--out-of-stock"),
    pages: int = typer.Option(REFACTORING.pages, "--pages", min=1),
    publisher: str = typer.Option(REFACTORING.publisher, "--publisher"),
    uri: str | None = _uri_option(),
    database: str | None = _database_option(),
    collection: str | None = _collection_option(),
) -> None:
    """Insert one book. Defaults to Refactoring by Martin Fowler."""
    settings = _settings_for(uri, database, collection)
    book = Book(
        title=title,
        author=author,
        genre=genre,
        published_year=published_year,
        price=price,
        in_stock=in_stock,
        pages=pages,
        publisher=publisher,
    )

    def action(client: BookstoreClient) -> int:
        summary = client.insert_book(book)
        console.print(f"[green]{render_write_summary(summary)}[/green] {book.title!r} _id={summary.inserted_ids[0]}")
        return 0

    _run_with_client(settings, action)


@books_app.command("update-price")
def books_update_price(
    title: str,
    price: float,
    uri: str | None = _uri_option(),
    database: str | None = _database_option(),
    collection: str | None = _collection_option(),
) -> None:
    """Set the price of the first book with an exact title."""
    settings = _settings_for(uri, database, collection)
    try:
        update = price_update(price)
    except ValueError as exc:
        _fail(str(exc))

    def action(client: BookstoreClient) -> int:
        summary = client.update_one(title_filter(title), update)
        if summary.matched == 0:
            console.print(f"[yellow]No book titled {title!r}.[/yellow]")
        console.print(render_write_summary(summary))
        return 0

    _run_with_client(settings, action)


@books_app.command("delete")
def books_delete(
    title: str,
    uri: str | None = _uri_option(),
    database: str | None = _database_option(),
    collection: str | None = _collection_option(),
) -> None:
    """Delete the first book with an exact title."""
    settings = _settings_for(uri, database, collection)

    def action(client: BookstoreClient) -> int:
        summary = client.delete_one(title_filter(title))
        if summary.modified == 0:
            console.print(f"[yellow]No book titled {title!r}.[/yellow]")
        console.print(render_write_summary(summary))
        return 0

    _run_with_client(settings, action)


def _run_pipeline(
    settings: ConnectionSettings,
    pipeline: list[dict[str, object]],
    *,
    title: str,
    key_label: str,
    json_output: bool,
) -> None:
    def action(client: BookstoreClient) -> int:
        rows = client.aggregate(pipeline)
        if json_output:
            console.print_json(documents_to_json(rows))
        else:
            console.print(render_group_table(rows, title=title, key_label=key_label))
        return 0

    _run_with_client(settings, action)


@stats_app.command("genres")
def stats_genres(
    json_output: bool = _json_option(),
    uri: str | None = _uri_option(),
    database: str | None = _database_option(),
    collection: str | None = _collection_option(),
) -> None:
    """Average price and book count per genre, most expensive first."""
    settings = _settings_for(uri, database, collection)
    _run_pipeline(
        settings,
        average_price_by_genre_pipeline(),
        title="Average price by genre",
        key_label="genre",
        json_output=json_output,
    )


@stats_app.command("top-authors")
def stats_top_authors(
    limit: int = typer.Option(1, "--limit", min=1, help="How many authors to show."),
    json_output: bool = _json_option(),
    uri: str | None = _uri_option(),
    database: str | None = _database_option(),
    collection: str | None = _collection_option(),
) -> None:
    """Authors with the most books."""
    settings = _settings_for(uri, database, collection)
    _run_pipeline(
        settings,
        top_authors_pipeline(limit),
        title="Authors with most books",
        key_label="author",
        json_output=json_output,
    )


@stats_app.command("decades")
def stats_decades(
    json_output: bool = _json_option(),
    uri: str | None = _uri_option(),
    database: str | None = _database_option(),
    collection: str | None = _collection_option(),
) -> None:
    """Count books by publication decade."""
    settings = _settings_for(uri, database, collection)
    _run_pipeline(
        settings,
        books_by_decade_pipeline(),
        title="Books by decade",
        key_label="decade",
        json_output=json_output,
    )


@index_app.command("create")
def index_create(
    uri: str | None = _uri_option(),
    database: str | None = _database_option(),
    collection: str | None = _collection_option(),
) -> None:
    """Create the title index and the author + published_year compound index."""
    settings = _settings_for(uri, database, collection)

    def action(client: BookstoreClient) -> int:
        for spec in EXAMPLE_INDEXES:
            name = client.create_index(spec.keys, name=spec.name)
            console.print(f"[green]Index ready:[/green] {name}")
        return 0

    _run_with_client(settings, action)


@index_app.command("list")
def index_list(
    json_output: bool = _json_option(),
    uri: str | None = _uri_option(),
    database: str | None = _database_option(),
    collection: str | None = _collection_option(),
) -> None:
    """List indexes on the books collection."""
    settings = _settings_for(uri, database, collection)

    def action(client: BookstoreClient) -> int:
        indexes = client.list_indexes()
        if json_output:
            console.print_json(data=indexes)
        else:
            console.print(render_indexes_table(indexes))
        return 0

    _run_with_client(settings, action)


@app.command("explain")
def explain(
    title: str | None = typer.Option(None, "--title", help="Explain a find by exact title."),
    author: str | None = typer.Option(None, "--author", help="Explain a find by author."),
    since: int = typer.Option(2000, "--since", help="Minimum published_year with --author."),
    json_output: bool = typer.Option(False, "--json", help="Emit the raw explain document."),
    uri: str | None = _uri_option(),
    database: str | None = _database_option(),
    collection: str | None = _collection_option(),
) -> None:
    """Explain a find with executionStats. Defaults to the title 'Dune'."""
    if title and author:
        _fail("Use either --title or --author, not both.")
    settings = _settings_for(uri, database, collection)
    query = author_since_filter(author, since) if author else title_filter(title or "Dune")

    def action(client: BookstoreClient) -> int:
        report = client.explain_find(query)
        if json_output:
            console.print_json(documents_to_json(report))
        else:
            console.print(render_explain_table(summarize_explain(report), title=f"Explain: {query}"))
        return 0

    _run_with_client(settings, action)


@app.command("walkthrough")
def walkthrough(
    sections: list[str] | None = typer.Option(
        None,
        "--section",
        "-s",
        help=f"Section(s) to run: {', '.join(SECTIONS)}. Defaults to all.",
    ),
    page: int = typer.Option(2, "--page", help="Page shown by the pagination example."),
    page_size: int | None = typer.Option(
        None, "--page-size", help="Page size for the pagination example. Defaults to config."
    ),
    list_only: bool = typer.Option(False, "--list", help="List the steps without running them."),
    uri: str | None = _uri_option(),
    database: str | None = _database_option(),
    collection: str | None = _collection_option(),
) -> None:
    """Run every example query in order and print the results."""
    cfg = _load_config_or_fail()
    try:
        steps = select_steps(
            build_steps(page=page, page_size=page_size if page_size is not None else cfg.page_size),
            sections,
        )
    except ValueError as exc:
        _fail(str(exc))

    if list_only:
        table = Table(title="Walkthrough steps")
        table.add_column("#", justify="right")
        table.add_column("Section", style="cyan")
        table.add_column("Step")
        for number, step in enumerate(steps, 1):
            table.add_row(str(number), step.section, step.heading)
        console.print(table)
        return

    settings = _resolve_settings_or_fail(cfg, uri, database, collection)

    def action(client: BookstoreClient) -> int:
        if client.count_books() == 0:
            console.print(
                f"[yellow]{settings.database}.{settings.collection} is empty. "
                "Run 'bookstorectl seed' to load sample books.[/yellow]"
            )
        run_walkthrough(client, console, steps)
        return 0

    _run_with_client(settings, action)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
