from __future__ import annotations

import os
import uuid

import pytest

from bookstore.mongo_api import BookstoreClient
from bookstore.queries import EXAMPLE_INDEXES, title_filter
from bookstore.sample_data import seed_books


@pytest.mark.live
def test_live_mongo_smoke():
    uri = os.getenv("BOOKSTORE_LIVE_URI")
    if not uri:
        pytest.skip("Set BOOKSTORE_LIVE_URI for live tests")

    database = f"bookstorectl_smoke_{uuid.uuid4().hex[:8]}"
    with BookstoreClient(uri, database, "books", timeout_ms=3000) as client:
        try:
            client.ping()
            seed_books(client)
            for spec in EXAMPLE_INDEXES:
                client.create_index(spec.keys, name=spec.name)

            report = client.explain_find(title_filter("Dune"))

            assert report["executionStats"]["nReturned"] == 1
            assert set(client.list_indexes()) >= {"idx_title_asc", "idx_author_year"}
        finally:
            client._client.drop_database(database)
