from __future__ import annotations

import mongomock
import pytest
from rich.console import Console

from bookstore.mongo_api import BookstoreClient, WriteSummary
from bookstore.sample_data import seed_books
from bookstore.walkthrough import CLOSING_MESSAGE, SECTIONS, build_steps, run_walkthrough, select_steps


class RecordingClient:
    def __init__(self) -> None:
        self.calls: list[tuple[str, object]] = []

    def find_books(self, query, **kwargs):
        self.calls.append(("find", (query, kwargs)))
        return [{"title": "Dune", "price": 17.99}]

    def update_one(self, query, update):
        self.calls.append(("update", (query, update)))
        return WriteSummary("update", 1, 1, [])

    def delete_one(self, query):
        self.calls.append(("delete", query))
        return WriteSummary("delete", 1, 1, [])

    def aggregate(self, pipeline):
        self.calls.append(("aggregate", pipeline))
        return [{"_id": "Fiction", "count": 2}]

    def create_index(self, keys, *, name):
        self.calls.append(("index", (keys, name)))
        return name

    def explain_find(self, query):
        self.calls.append(("explain", query))
        return {"queryPlanner": {"winningPlan": {"stage": "COLLSCAN"}}, "executionStats": {"nReturned": 1}}


def test_build_steps_follow_original_order():
    steps = build_steps()

    assert len(steps) == 22
    assert [step.section for step in steps][:5] == ["crud"] * 5
    assert steps[0].heading == "Find: books in Science Fiction"
    assert steps[14].heading == "Pagination: page 2 (limit 5, skip 5)"
    assert steps[-1].heading == "Explain: find by author/year"
    assert {step.section for step in steps} == set(SECTIONS)


def test_build_steps_rejects_bad_page():
    with pytest.raises(ValueError):
        build_steps(page=0)


def test_select_steps_filters_sections():
    steps = select_steps(build_steps(), ["Aggregation"])

    assert [step.heading for step in steps] == [
        "Aggregation: average price by genre",
        "Aggregation: author with most books",
        "Aggregation: books by decade",
    ]


def test_select_steps_rejects_unknown_section():
    with pytest.raises(ValueError, match="Unknown section"):
        select_steps(build_steps(), ["crud", "sharding"])


def test_run_walkthrough_issues_every_call_in_order():
    client = RecordingClient()
    console = Console(width=120, record=True)

    count = run_walkthrough(client, console, build_steps())

    kinds = [kind for kind, _ in client.calls]
    assert count == 22
    assert kinds == ["find"] * 3 + ["update", "delete"] + ["find"] * 10 + ["aggregate"] * 3 + ["index"] * 2 + ["explain"] * 2
    assert client.calls[3] == ("update", ({"title": "Dune"}, {"$set": {"price": 17.99}}))
    assert client.calls[4] == ("delete", {"title": "Deep Work"})
    assert client.calls[10] == ("find", ({"in_stock": True, "published_year": {"$gt": 2010}}, {}))
    assert client.calls[14][1][1] == {
        "projection": {"_id": 0, "title": 1, "author": 1, "price": 1},
        "sort": [("title", 1)],
        "skip": 5,
        "limit": 5,
    }
    assert client.calls[-1] == ("explain", {"author": "Andy Weir", "published_year": {"$gte": 2000}})

    output = console.export_text()
    assert "Update: set price of Dune to 17.99" in output
    assert "Matched 1 document(s), modified 1." in output
    assert CLOSING_MESSAGE in output


def test_run_walkthrough_against_in_memory_collection():
    with BookstoreClient("mongodb://localhost", "plp_bookstore", "books", client=mongomock.MongoClient()) as client:
        seed_books(client)
        console = Console(width=160, record=True)

        run_walkthrough(client, console, select_steps(build_steps(), ["crud", "examples", "advanced"]))

        assert client.find_books({"title": "Dune"})[0]["price"] == 17.99
        assert client.find_books({"title": "Deep Work"}) == []

    output = console.export_text()
    assert "Find: books by James Clear" in output
    assert "Atomic Habits" in output


def test_run_walkthrough_prints_each_heading_once():
    client = RecordingClient()
    console = Console(width=120, record=True)

    run_walkthrough(client, console, build_steps())

    output = console.export_text()
    assert output.count("Find: books in Science Fiction") == 1
    assert output.count("Aggregation: average price by genre") == 1
    assert output.count("Explain: find by title") == 1
