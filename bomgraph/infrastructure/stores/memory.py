"""
In-memory Node Store.

Holds BOM headers and their lines in dictionaries. Used by tests and by
callers that already hold snapshots in memory.
"""

from dataclasses import replace
import logging
import threading
from typing import Dict, Iterable, List, Optional, Sequence

from bomgraph.domain.bom.entities import BOMComponentNode, BOMHeader
from bomgraph.domain.bom.repositories import NodeStore
from bomgraph.domain.shared.exceptions import (
    BusinessRuleViolationException,
    EntityNotFoundException,
    InvalidFieldException,
    VersionConflictException,
)

logger = logging.getLogger(__name__)


class InMemoryNodeStore(NodeStore):
    """Dictionary-backed NodeStore; commits are atomic per BOM."""

    def __init__(self):
        self._headers: Dict[str, BOMHeader] = {}
        self._items: Dict[str, List[BOMComponentNode]] = {}
        self._lock = threading.Lock()

    def add_bom(self, header: BOMHeader, items: Iterable[BOMComponentNode] = ()) -> BOMHeader:
        """Register a BOM with its lines. Activating it deactivates the product's other BOMs."""
        items = list(items)
        for item in items:
            if item.bom_id != header.id:
                raise InvalidFieldException(
                    f"Line {item.id} belongs to BOM {item.bom_id}, not {header.id}",
                    "bom_id",
                    item.bom_id,
                )
        with self._lock:
            if header.id in self._headers:
                raise BusinessRuleViolationException(
                    "DUPLICATE_BOM", f"BOM {header.id} already exists", bom_id=header.id
                )
            if header.is_active:
                for other in list(self._headers.values()):
                    if other.product_id == header.product_id and other.is_active:
                        self._headers[other.id] = replace(other, is_active=False)
            self._headers[header.id] = header
            self._items[header.id] = items
        logger.debug(f"Registered BOM {header.id} for product {header.product_id} with {len(items)} lines")
        return header

    def get_bom(self, bom_id: str) -> BOMHeader:
        try:
            return self._headers[bom_id]
        except KeyError:
            raise EntityNotFoundException("BOM", bom_id) from None

    def find_active_bom(self, product_id: str) -> Optional[BOMHeader]:
        for header in self._headers.values():
            if header.product_id == product_id and header.is_active:
                return header
        return None

    def list_boms(self, product_id: str) -> List[BOMHeader]:
        return [h for h in self._headers.values() if h.product_id == product_id]

    def list_items(self, bom_id: str) -> List[BOMComponentNode]:
        self.get_bom(bom_id)
        return list(self._items[bom_id])

    def list_product_graph_edges(self, product_id: str) -> List[str]:
        header = self.find_active_bom(product_id)
        if header is None:
            return []
        seen: Dict[str, None] = {}
        for item in self._items[header.id]:
            if item.is_active:
                seen.setdefault(item.component_id, None)
        return list(seen)

    def commit_items(
        self,
        bom_id: str,
        items: Sequence[BOMComponentNode],
        expected_revision: int,
    ) -> BOMHeader:
        with self._lock:
            header = self.get_bom(bom_id)
            if header.revision != expected_revision:
                logger.warning(
                    f"Rejected stale commit on BOM {bom_id}: "
                    f"expected revision {expected_revision}, found {header.revision}"
                )
                raise VersionConflictException("BOM", bom_id, expected_revision, header.revision)
            header = replace(header, revision=header.revision + 1)
            self._headers[bom_id] = header
            self._items[bom_id] = list(items)
        logger.info(f"Committed {len(items)} lines to BOM {bom_id} at revision {header.revision}")
        return header
