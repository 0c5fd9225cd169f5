"""
Shared fixtures.

The sample BOM belongs to product P-A:

    n1   C-FRAME  SUB_ASSEMBLY    qty 1    cost 100          -> 100.00
      n12  C-PANEL  SEMI_FINISHED qty 2    cost 30           ->  60.00
        n121 C-STEEL RAW_MATERIAL qty 1.5  cost 10           ->  15.00
      n11  C-BOLT   PURCHASED_PART qty 4   cost 2.5 scrap 10 ->  11.00
    n2   C-MOTOR  PURCHASED_PART  qty 1    cost 500 optional -> 500.00
"""

from decimal import Decimal

import pytest

from bomgraph.domain.bom.entities import BOMComponentNode, BOMHeader
from bomgraph.domain.bom.tree import build_tree
from bomgraph.infrastructure.stores.memory import InMemoryNodeStore


def _node(id, component_id=None, parent_id=None, sequence=1, component_type='SUB_ASSEMBLY',
          bom_id='BOM-A', product_id='P-A', **fields):
    return BOMComponentNode(
        id=id,
        bom_id=bom_id,
        product_id=product_id,
        component_id=component_id or f'C-{id}',
        component_type=component_type,
        parent_id=parent_id,
        sequence=sequence,
        **fields,
    )


@pytest.fixture
def make_node():
    return _node


@pytest.fixture
def sample_records():
    return [
        _node('n1', 'C-FRAME', sequence=1, quantity=1, unit_cost=100),
        _node('n11', 'C-BOLT', 'n1', sequence=2, component_type='PURCHASED_PART',
              quantity=4, unit_cost='2.5', scrap_rate=10),
        _node('n12', 'C-PANEL', 'n1', sequence=1, component_type='SEMI_FINISHED',
              quantity=2, unit_cost=30, process_step='PRESS'),
        _node('n121', 'C-STEEL', 'n12', sequence=1, component_type='RAW_MATERIAL',
              quantity='1.5', unit_cost=10, process_step='PRESS'),
        _node('n2', 'C-MOTOR', sequence=2, component_type='PURCHASED_PART',
              quantity=1, unit_cost=500, is_optional=True),
    ]


@pytest.fixture
def sample_tree(sample_records):
    return build_tree(sample_records)


@pytest.fixture
def header():
    return BOMHeader(id='BOM-A', product_id='P-A')


@pytest.fixture
def store(header, sample_records):
    store = InMemoryNodeStore()
    store.add_bom(header, sample_records)
    return store


@pytest.fixture
def money():
    return lambda value: Decimal(value).quantize(Decimal('0.01'))
