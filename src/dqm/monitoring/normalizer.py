"""Result normalizer — typed query result set to flat record.

The query engine returns every cell as a string plus per-column type
metadata. A data-quality query always returns exactly one header row and
one value row; this module turns that pair into ``{column: typed value}``.

Input shape::

    {
        "ObjectKey": "beta-content-provider/success-path/valid-file.csv",
        "ResultSet": {
            "ResultSetMetadata": {"ColumnInfo": [{"Name": "success", "Type": "boolean"}, ...]},
            "Rows": [
                {"Data": [{"VarCharValue": "success"}, ...]},   # header row
                {"Data": [{"VarCharValue": "true"}, ...]},      # value row
            ],
        },
    }

Output is always ``{"results": {...}}``; anomalies are logged and produce
an empty (or, after a coercion error, partial) mapping rather than an
exception, so the evaluation gate routes them to the failure branch.

Note: a result set with more than two rows is rejected outright, even
though its first two rows would be usable.
"""

from __future__ import annotations

from typing import Any

from dqm.core.logging import get_logger

logger = get_logger(__name__)

EXPECTED_ROW_COUNT = 2


def convert_data(data: str, data_type: str) -> Any:
    """Convert a raw cell value to the Python type of its column.

    >>> convert_data("2", "bigint")
    2
    >>> convert_data("6.28", "double")
    6.28
    >>> convert_data("false", "boolean")
    False
    >>> convert_data("test", "string")
    'test'
    """
    if data_type == "bigint":
        return int(data)
    if data_type == "double":
        return float(data)
    if data_type == "boolean":
        return data == "true"
    return data


def _cell_values(row: dict[str, Any]) -> list[Any]:
    return [cell.get("VarCharValue") for cell in row["Data"]]


def process_query_results(event: dict[str, Any] | None) -> dict[str, dict[str, Any]]:
    """Normalize a two-row result set into ``{"results": {column: value}}``."""
    results: dict[str, Any] = {}
    if not event:
        logger.error("query_results.no_event", reason="No event found")
        return {"results": results}

    object_key = event.get("ObjectKey")
    result_set = event.get("ResultSet")
    if not object_key or not result_set:
        logger.error(
            "query_results.missing_input",
            reason="No ObjectKey or ResultSet found in event",
            has_object_key=bool(object_key),
            has_result_set=bool(result_set),
        )
        return {"results": results}

    logger.info("query_results.start", object_key=object_key)

    try:
        rows = result_set.get("Rows") or []
        if len(rows) == EXPECTED_ROW_COUNT:
            column_info = result_set["ResultSetMetadata"]["ColumnInfo"]
            column_names = _cell_values(rows[0])
            values = _cell_values(rows[1])
            for index, raw in enumerate(values):
                results[column_names[index]] = convert_data(raw, column_info[index]["Type"])
        elif len(rows) > EXPECTED_ROW_COUNT:
            logger.error(
                "query_results.row_count_invalid",
                reason=f"ResultSet should have {EXPECTED_ROW_COUNT} rows but it has {len(rows)} rows",
                row_count=len(rows),
                object_key=object_key,
            )
        else:
            logger.error(
                "query_results.row_count_invalid",
                reason="ResultSet is empty or does not have enough rows",
                row_count=len(rows),
                object_key=object_key,
            )
    except Exception as e:
        logger.error(
            "query_results.conversion_failed",
            object_key=object_key,
            error_type=type(e).__name__,
            error=str(e),
            converted_fields=len(results),
        )

    logger.info("query_results.finish", object_key=object_key, fields=len(results))
    return {"results": results}


def handler(event: dict[str, Any] | None, context: Any = None) -> dict[str, dict[str, Any]]:
    """Function-as-a-service entry point."""
    return process_query_results(event)
