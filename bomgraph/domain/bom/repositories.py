"""
BOM Domain - Repository Interfaces.
"""

from abc import ABC, abstractmethod
from typing import Iterable, List, Optional, Sequence

from .entities import BOMComponentNode, BOMHeader


class NodeStore(ABC):
    """
    System of record for BOM headers, their component lines and the
    product-to-product reference graph.
    """

    @abstractmethod
    def get_bom(self, bom_id: str) -> BOMHeader:
        """Get a BOM header; raise EntityNotFoundException if missing."""
        pass

    @abstractmethod
    def find_active_bom(self, product_id: str) -> Optional[BOMHeader]:
        """Get the active BOM of a product, if it has one."""
        pass

    @abstractmethod
    def list_items(self, bom_id: str) -> List[BOMComponentNode]:
        """Get every component line of a BOM, inactive lines included."""
        pass

    @abstractmethod
    def list_boms(self, product_id: str) -> List[BOMHeader]:
        """Get every BOM version of a product, inactive ones included."""
        pass

    @abstractmethod
    def add_bom(self, header: BOMHeader, items: Iterable[BOMComponentNode] = ()) -> BOMHeader:
        """
        Store a new BOM with its lines.

        Raises BusinessRuleViolationException if the id is already used.
        """
        pass

    @abstractmethod
    def list_product_graph_edges(self, product_id: str) -> List[str]:
        """Get the component products used by the active BOM of a product."""
        pass

    @abstractmethod
    def commit_items(
        self,
        bom_id: str,
        items: Sequence[BOMComponentNode],
        expected_revision: int,
    ) -> BOMHeader:
        """
        Replace the lines of a BOM and bump its revision.

        Raises VersionConflictException if the stored revision is not
        ``expected_revision``.
        """
        pass
