# SPDX-License-Identifier: Apache-2.0

"""
Sorting and truncation rules for reporting projections.

Every ordering is total: rows tied on the sort key are ordered by their ledger
document id, so the same committed state always yields the same report.
"""

from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence
from .errors import ReportingNotFoundError


HIGH_RISK_THRESHOLD = 3
RECENT_CLAIMS_LIMIT = 3
RECENT_SHIPMENTS_LIMIT = 10
SERIES_LIMIT = 10

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _as_sortable(value: Any) -> Any:
    # Legacy "NA" dates and missing values sort last in descending order
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
    if value is None or isinstance(value, str):
        return _EPOCH
    return value


def document_id(document: Dict[str, Any]) -> str:
    return str(document.get("metadata", {}).get("documentId", ""))


def sort_newest_first(
    documents: Iterable[Dict[str, Any]],
    key: Callable[[Dict[str, Any]], Any]
) -> List[Dict[str, Any]]:
    """
    Sort documents by ``key`` descending, ties by document id descending.
    """
    return sorted(
        documents,
        key=lambda doc: (_as_sortable(key(doc)), document_id(doc)),
        reverse=True
    )


def by_field(name: str) -> Callable[[Dict[str, Any]], Any]:
    return lambda doc: doc.get(name)


def by_commit_time(document: Dict[str, Any]) -> Any:
    return document.get("metadata", {}).get("txTime")


def truncate(rows: Sequence[Any], limit: Optional[int]) -> List[Any]:
    if limit is None:
        return list(rows)
    return list(rows[:limit])


def require_rows(rows: List[Any], entity: str, detail: str) -> List[Any]:
    """Reporting treats an empty result as absence."""
    if not rows:
        raise ReportingNotFoundError(entity, detail)
    return rows


def order_recent_shipments(
    masters: Iterable[Dict[str, Any]],
    legs: Iterable[Dict[str, Any]],
    limit: int = RECENT_SHIPMENTS_LIMIT
) -> List[Dict[str, Any]]:
    """
    Masters by shipping date descending, each followed by its own retail legs
    by shipping date descending, truncated to ``limit`` entries.
    """
    legs_by_master: Dict[str, List[Dict[str, Any]]] = {}
    for leg in legs:
        legs_by_master.setdefault(leg.get("masterShipmentId"), []).append(leg)

    ordered: List[Dict[str, Any]] = []
    for master in sort_newest_first(masters, by_field("shippingDate")):
        ordered.append(master)
        children = legs_by_master.get(master.get("shipmentId"), [])
        ordered.extend(sort_newest_first(children, by_field("shippingDate")))
        if len(ordered) >= limit:
            break

    return truncate(ordered, limit)


def party_key(party: Optional[str]) -> Optional[str]:
    """Parties are compared upper-cased."""
    if party is None:
        return None
    party = party.strip()
    return party.upper() if party else None
