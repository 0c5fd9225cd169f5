from .bom import (
    AttachResultSerializer,
    BOMItemInputSerializer,
    BOMStatisticsSerializer,
    BOMTreeNodeSerializer,
    BOMTreeSerializer,
    CompareOptionsSerializer,
    ComponentNodeSerializer,
    CopyOptionsSerializer,
    CopyResultSerializer,
    DiffResultSerializer,
    FilterOptionsSerializer,
    StructureReportSerializer,
    VisibleNodeSerializer,
    parse_node_records,
)
