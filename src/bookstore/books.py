from __future__ import annotations

from typing import Any, Mapping, Sequence

from bson import json_util
from rich.table import Table

from bookstore.mongo_api import WriteSummary

BOOK_COLUMNS = ("title", "author", "genre", "published_year", "price", "in_stock", "pages", "publisher")


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "yes" if value else "no"
    if isinstance(value, float):
        return f"{value:.2f}"
    return str(value)


def documents_to_json(documents: Sequence[Mapping[str, Any]] | Mapping[str, Any]) -> str:
    return json_util.dumps(documents, indent=2)


def visible_columns(documents: Sequence[Mapping[str, Any]]) -> list[str]:
    """Columns to render: the known book fields first, then anything else seen."""
    seen: list[str] = []
    for doc in documents:
        for key in doc:
            if key not in seen and key != "_id":
                seen.append(key)
    ordered = [column for column in BOOK_COLUMNS if column in seen]
    ordered.extend(column for column in seen if column not in BOOK_COLUMNS)
    return ordered


def render_books_table(documents: Sequence[Mapping[str, Any]], *, title: str | None = "Books") -> Table:
    table = Table(title=title)
    columns = visible_columns(documents)
    for column in columns:
        justify = "right" if column in {"published_year", "price", "pages"} else "left"
        style = "bold" if column == "title" else None
        table.add_column(column, justify=justify, style=style)

    for doc in documents:
        table.add_row(*(_cell(doc.get(column)) for column in columns))

    table.caption = f"{len(documents)} document(s)"
    return table


def render_group_table(
    rows: Sequence[Mapping[str, Any]],
    *,
    title: str | None,
    key_label: str,
) -> Table:
    table = Table(title=title)
    table.add_column(key_label, style="cyan")
    value_columns = visible_columns(rows)
    for column in value_columns:
        table.add_column(column, justify="right")

    for row in rows:
        table.add_row(_cell(row.get("_id")), *(_cell(row.get(column)) for column in value_columns))
    return table


def render_write_summary(summary: WriteSummary) -> str:
    if summary.operation == "insert":
        return f"Inserted {len(summary.inserted_ids)} document(s)."
    if summary.operation == "delete":
        return f"Deleted {summary.modified} document(s)."
    return f"Matched {summary.matched} document(s), modified {summary.modified}."


def render_indexes_table(indexes: Mapping[str, Sequence[tuple[str, int]]]) -> Table:
    table = Table(title="Indexes")
    table.add_column("Name", style="cyan")
    table.add_column("Keys")
    for name in sorted(indexes):
        keys = ", ".join(f"{field}: {direction}" for field, direction in indexes[name])
        table.add_row(name, keys)
    return table


def _winning_stages(plan: Mapping[str, Any]) -> list[str]:
    stages: list[str] = []
    node: Mapping[str, Any] | None = plan
    while node:
        stage = node.get("stage")
        if stage:
            index_name = node.get("indexName")
            stages.append(f"{stage}({index_name})" if index_name else str(stage))
        child = node.get("inputStage")
        if child is None and node.get("inputStages"):
            child = node["inputStages"][0]
        node = child
    return stages


def summarize_explain(explain: Mapping[str, Any]) -> dict[str, Any]:
    """Pull the interesting numbers out of an ``executionStats`` explain document."""
    planner = explain.get("queryPlanner", {})
    winning_plan = planner.get("winningPlan", {})
    # Newer servers wrap the classic plan in queryPlan.
    if "queryPlan" in winning_plan:
        winning_plan = winning_plan["queryPlan"]
    stats = explain.get("executionStats", {})
    stages = _winning_stages(winning_plan)
    return {
        "namespace": planner.get("namespace"),
        "winning_plan": " <- ".join(stages),
        "used_index": any(stage.startswith("IXSCAN") for stage in stages),
        "n_returned": stats.get("nReturned"),
        "docs_examined": stats.get("totalDocsExamined"),
        "keys_examined": stats.get("totalKeysExamined"),
        "execution_time_ms": stats.get("executionTimeMillis"),
    }


def render_explain_table(summary: Mapping[str, Any], *, title: str | None = "Query plan") -> Table:
    table = Table(title=title)
    table.add_column("Metric", style="cyan")
    table.add_column("Value")
    for key, value in summary.items():
        table.add_row(key, _cell(value))
    return table
