from __future__ import annotations

import json

import pytest
from typer.testing import CliRunner

from bookstore.cli import app
from bookstore.config import AppConfig, ConnectionSettings
from bookstore.mongo_api import BookstoreError, WriteSummary

SETTINGS = ConnectionSettings(
    uri="mongodb://db.test",
    database="plp_bookstore",
    collection="books",
    timeout_ms=1000,
    uri_source="option",
)


class FakeClient:
    def __init__(self) -> None:
        self.find_calls: list[tuple[dict, dict]] = []
        self.inserted: list[object] = []

    def find_books(self, query, **kwargs):
        self.find_calls.append((query, kwargs))
        return [{"title": "Dune", "author": "Frank Herbert", "price": 17.99}]

    def insert_book(self, book):
        self.inserted.append(book)
        return WriteSummary("insert", 0, 0, ["abc123"])

    def update_one(self, query, update):
        matched = 1 if query == {"title": "Dune"} else 0
        return WriteSummary("update", matched, matched, [])

    def delete_one(self, query):
        deleted = 1 if query == {"title": "Deep Work"} else 0
        return WriteSummary("delete", deleted, deleted, [])


@pytest.fixture()
def fake_client(monkeypatch):
    client = FakeClient()
    monkeypatch.setattr("bookstore.cli._load_config_or_fail", lambda: AppConfig(page_size=5))
    monkeypatch.setattr("bookstore.cli._resolve_settings_or_fail", lambda _cfg, _uri, _db, _coll: SETTINGS)
    monkeypatch.setattr("bookstore.cli._run_with_client", lambda _settings, action: action(client))
    return client


def test_books_find_builds_filter(fake_client):
    runner = CliRunner()

    result = runner.invoke(
        app,
        ["books", "find", "--genre", "Science Fiction", "--published-after", "2015", "--in-stock"],
    )

    assert result.exit_code == 0
    assert "Dune" in result.output
    assert fake_client.find_calls == [
        ({"genre": "Science Fiction", "published_year": {"$gt": 2015}, "in_stock": True}, {})
    ]


def test_books_find_json(fake_client):
    runner = CliRunner()

    result = runner.invoke(app, ["books", "find", "--author", "Frank Herbert", "--json"])

    assert result.exit_code == 0
    parsed = json.loads(result.output)
    assert parsed[0]["title"] == "Dune"


def test_books_list_paginates_with_config_page_size(fake_client):
    runner = CliRunner()

    result = runner.invoke(app, ["books", "list", "--page", "2", "--sort", "-price", "--brief"])

    assert result.exit_code == 0
    query, kwargs = fake_client.find_calls[0]
    assert query == {}
    assert kwargs == {
        "projection": {"_id": 0, "title": 1, "author": 1, "price": 1},
        "sort": [("price", -1)],
        "skip": 5,
        "limit": 5,
    }


def test_books_list_rejects_page_zero(fake_client):
    runner = CliRunner()

    result = runner.invoke(app, ["books", "list", "--page", "0"])

    assert result.exit_code == 1
    assert "Page numbers start at 1" in result.output
    assert fake_client.find_calls == []


def test_books_list_rejects_unknown_sort(fake_client):
    runner = CliRunner()

    result = runner.invoke(app, ["books", "list", "--sort", "rating"])

    assert result.exit_code == 1
    assert "Unknown sort" in result.output


def test_books_add_defaults_to_refactoring(fake_client):
    runner = CliRunner()

    result = runner.invoke(app, ["books", "add"])

    assert result.exit_code == 0
    assert "Inserted 1 document(s)" in result.output
    book = fake_client.inserted[0]
    assert book.title == "Refactoring"
    assert book.author == "Martin Fowler"
    assert book.pages == 448


def test_books_update_price(fake_client):
    runner = CliRunner()

    result = runner.invoke(app, ["books", "update-price", "Dune", "17.99"])

    assert result.exit_code == 0
    assert "Matched 1 document(s), modified 1." in result.output


def test_books_update_price_missing_title_warns(fake_client):
    runner = CliRunner()

    result = runner.invoke(app, ["books", "update-price", "Missing", "5"])

    assert result.exit_code == 0
    assert "No book titled 'Missing'" in result.output


def test_books_update_price_rejects_negative(fake_client):
    runner = CliRunner()

    result = runner.invoke(app, ["books", "update-price", "Dune", "--", "-1"])

    assert result.exit_code == 1
    assert "Price cannot be negative" in result.output


def test_books_delete(fake_client):
    runner = CliRunner()

    result = runner.invoke(app, ["books", "delete", "Deep Work"])

    assert result.exit_code == 0
    assert "Deleted 1 document(s)." in result.output


def test_run_with_client_reports_errors(monkeypatch):
    runner = CliRunner()
    monkeypatch.setattr("bookstore.cli._load_config_or_fail", lambda: AppConfig())
    monkeypatch.setattr("bookstore.cli._resolve_settings_or_fail", lambda _cfg, _uri, _db, _coll: SETTINGS)

    class ExplodingClient:
        def __init__(self, *_args, **_kwargs) -> None:
            pass

        @classmethod
        def from_settings(cls, _settings):
            return cls()

        def __enter__(self):
            return self

        def __exit__(self, *_exc):
            return None

        def delete_one(self, _query):
            raise BookstoreError("MongoDB failed to delete a book: not authorized")

    monkeypatch.setattr("bookstore.cli.BookstoreClient", ExplodingClient)

    result = runner.invoke(app, ["books", "delete", "Dune"])

    assert result.exit_code == 1
    assert "not authorized" in result.output


def test_books_find_json_keeps_long_values_parseable(fake_client, monkeypatch):
    runner = CliRunner()
    long_title = "The Very Long Anthology of " + "Collected Stories " * 15
    monkeypatch.setattr(
        fake_client,
        "find_books",
        lambda query, **kwargs: [{"title": long_title, "author": "Various", "price": 9.5}],
    )

    result = runner.invoke(app, ["books", "find", "--author", "Various", "--json"])

    assert result.exit_code == 0
    assert len(long_title) > 200
    assert json.loads(result.output) == [{"title": long_title, "author": "Various", "price": 9.5}]
