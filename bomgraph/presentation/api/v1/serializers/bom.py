"""
BOM Serializers.

Input serializers validate raw component records and options before they
reach the engine; output serializers render engine results to plain data.
"""

from decimal import Decimal

from rest_framework import serializers

from bomgraph.domain.bom.diff import COMPARED_FIELDS
from bomgraph.domain.bom.entities import BOMComponentNode
from bomgraph.domain.bom.filters import FilterOptions
from bomgraph.domain.shared.exceptions import InvalidFieldException
from bomgraph.domain.shared.value_objects import ComponentType, CostRange, LevelRange
from bomgraph.presentation.api.errors import error_payload

COMPONENT_TYPE_CHOICES = [c.value for c in ComponentType]


def _plain(value):
    if isinstance(value, Decimal):
        return str(value)
    return getattr(value, 'value', value)


# =============================================================================
# INPUT
# =============================================================================

class BOMItemInputSerializer(serializers.Serializer):
    """Serializer for one flat component record."""

    id = serializers.CharField(max_length=64)
    bom_id = serializers.CharField(max_length=64)
    product_id = serializers.CharField(max_length=64)
    component_id = serializers.CharField(max_length=64)
    component_type = serializers.ChoiceField(choices=COMPONENT_TYPE_CHOICES)
    parent_id = serializers.CharField(max_length=64, allow_null=True, allow_blank=True, default=None)
    level = serializers.IntegerField(min_value=0, default=0)
    sequence = serializers.IntegerField(min_value=0, default=0)
    quantity = serializers.DecimalField(max_digits=18, decimal_places=4)
    scrap_rate = serializers.DecimalField(
        max_digits=7, decimal_places=4,
        min_value=Decimal('0'), max_value=Decimal('100'),
        default=Decimal('0'),
    )
    unit_cost = serializers.DecimalField(
        max_digits=18, decimal_places=4, min_value=Decimal('0'), default=Decimal('0')
    )
    unit = serializers.CharField(max_length=16, default='EA')
    is_optional = serializers.BooleanField(default=False)
    is_active = serializers.BooleanField(default=True)
    position = serializers.CharField(allow_null=True, allow_blank=True, default=None)
    process_step = serializers.CharField(allow_null=True, allow_blank=True, default=None)
    remarks = serializers.CharField(allow_null=True, allow_blank=True, default=None)

    def validate_quantity(self, value):
        if value <= 0:
            raise serializers.ValidationError('Quantity must be greater than zero.')
        return value

    def create(self, validated_data):
        return BOMComponentNode(**validated_data)


def parse_node_records(payload) -> list:
    """
    Validate a list of raw records and build component lines.

    Raises InvalidFieldException carrying the serializer errors.
    """
    serializer = BOMItemInputSerializer(data=payload, many=True)
    if not serializer.is_valid():
        errors = serializer.errors
        first = next(
            (field for item in errors if isinstance(item, dict) for field in item),
            None,
        ) if isinstance(errors, list) else None
        raise InvalidFieldException('Invalid component records', first, errors={'records': errors})
    return serializer.save()


class LevelRangeSerializer(serializers.Serializer):
    min = serializers.IntegerField(min_value=0, allow_null=True, default=None)
    max = serializers.IntegerField(min_value=0, allow_null=True, default=None)

    def validate(self, attrs):
        if attrs['min'] is not None and attrs['max'] is not None and attrs['min'] > attrs['max']:
            raise serializers.ValidationError('min cannot exceed max.')
        return attrs


class CostRangeSerializer(serializers.Serializer):
    min = serializers.DecimalField(max_digits=18, decimal_places=2, allow_null=True, default=None)
    max = serializers.DecimalField(max_digits=18, decimal_places=2, allow_null=True, default=None)

    def validate(self, attrs):
        if attrs['min'] is not None and attrs['max'] is not None and attrs['min'] > attrs['max']:
            raise serializers.ValidationError('min cannot exceed max.')
        return attrs


class FilterOptionsSerializer(serializers.Serializer):
    """Serializer for population filter options."""

    include_inactive_items = serializers.BooleanField(default=False)
    include_optional_items = serializers.BooleanField(default=True)
    component_type_filter = serializers.ListField(
        child=serializers.ChoiceField(choices=COMPONENT_TYPE_CHOICES),
        allow_null=True,
        default=None,
    )
    level_range = LevelRangeSerializer(required=False)
    cost_range = CostRangeSerializer(required=False)
    process_step = serializers.CharField(allow_null=True, default=None)

    def create(self, validated_data):
        level_range = validated_data.pop('level_range', None)
        cost_range = validated_data.pop('cost_range', None)
        return FilterOptions(
            level_range=LevelRange(**level_range) if level_range else LevelRange(),
            cost_range=CostRange(**cost_range) if cost_range else CostRange(),
            **validated_data,
        )


class CompareOptionsSerializer(FilterOptionsSerializer):
    """Filter options plus comparison knobs."""

    ignore_fields = serializers.ListField(
        child=serializers.ChoiceField(choices=list(COMPARED_FIELDS)),
        default=list,
    )
    minor_cost_threshold = serializers.DecimalField(
        max_digits=18, decimal_places=2, min_value=Decimal('0'), allow_null=True, default=None
    )

    def create(self, validated_data):
        ignore_fields = tuple(validated_data.pop('ignore_fields'))
        minor_cost_threshold = validated_data.pop('minor_cost_threshold')
        return {
            'options': super().create(validated_data),
            'ignore_fields': ignore_fields,
            'minor_cost_threshold': minor_cost_threshold,
        }


class CopyOptionsSerializer(FilterOptionsSerializer):
    """Filter options choosing the copied lines, plus the new BOM's identity."""

    target_product_id = serializers.CharField(max_length=100)
    new_version = serializers.CharField(max_length=20)
    cost_adjustment_rate = serializers.DecimalField(
        max_digits=8, decimal_places=4,
        min_value=Decimal('-100'), max_value=Decimal('1000'),
        allow_null=True, default=None,
    )
    bom_id = serializers.CharField(allow_null=True, default=None)
    description = serializers.CharField(allow_null=True, default=None)

    def create(self, validated_data):
        copy = {
            name: validated_data.pop(name)
            for name in ('target_product_id', 'new_version', 'cost_adjustment_rate', 'bom_id', 'description')
        }
        copy['options'] = super().create(validated_data)
        return copy


# =============================================================================
# OUTPUT
# =============================================================================

class ComponentNodeSerializer(serializers.Serializer):
    """Serializer for one component line with its derived values."""

    id = serializers.CharField()
    bom_id = serializers.CharField()
    product_id = serializers.CharField()
    component_id = serializers.CharField()
    component_type = serializers.CharField(source='component_type.value')
    parent_id = serializers.CharField(allow_null=True)
    level = serializers.IntegerField()
    sequence = serializers.IntegerField()
    quantity = serializers.DecimalField(max_digits=20, decimal_places=4)
    scrap_rate = serializers.DecimalField(max_digits=20, decimal_places=4)
    unit_cost = serializers.DecimalField(max_digits=20, decimal_places=4)
    unit = serializers.CharField()
    is_optional = serializers.BooleanField()
    is_active = serializers.BooleanField()
    position = serializers.CharField(allow_null=True)
    process_step = serializers.CharField(allow_null=True)
    remarks = serializers.CharField(allow_null=True)
    actual_quantity = serializers.DecimalField(max_digits=20, decimal_places=4)
    total_cost = serializers.DecimalField(max_digits=20, decimal_places=2)


class BOMTreeNodeSerializer(serializers.Serializer):
    """Serializer for BOM lines in tree format."""

    node = ComponentNodeSerializer()
    children = serializers.SerializerMethodField()

    def get_children(self, obj):
        if obj['children']:
            return BOMTreeNodeSerializer(obj['children'], many=True).data
        return []


class VisibleNodeSerializer(serializers.Serializer):
    index = serializers.IntegerField()
    depth = serializers.IntegerField()
    has_children = serializers.BooleanField()
    is_expanded = serializers.BooleanField()
    node = ComponentNodeSerializer()


class BOMStatisticsSerializer(serializers.Serializer):
    total_items = serializers.IntegerField()
    active_items = serializers.IntegerField()
    component_type_count = serializers.SerializerMethodField()
    process_step_count = serializers.DictField(child=serializers.IntegerField())
    level_count = serializers.DictField(child=serializers.IntegerField())
    cost_by_level = serializers.DictField(child=serializers.DecimalField(max_digits=20, decimal_places=2))
    optional_items_count = serializers.IntegerField()
    critical_items_count = serializers.IntegerField()
    total_cost = serializers.DecimalField(max_digits=20, decimal_places=2)
    average_cost_per_item = serializers.DecimalField(max_digits=20, decimal_places=2)
    max_level = serializers.IntegerField()

    def get_component_type_count(self, obj):
        return {t.value: count for t, count in obj.component_type_count.items()}


class BOMTreeSerializer(serializers.Serializer):
    """Serializer for a tree view: header, nested lines and statistics."""

    bom_id = serializers.CharField(source='header.id')
    product_id = serializers.CharField(source='header.product_id')
    version = serializers.CharField(source='header.version')
    revision = serializers.IntegerField(source='header.revision')
    total_items = serializers.IntegerField(source='tree.total_items')
    total_cost = serializers.DecimalField(source='tree.total_cost', max_digits=20, decimal_places=2)
    max_level = serializers.IntegerField(source='tree.max_level')
    orphans = serializers.SerializerMethodField()
    items = serializers.SerializerMethodField()
    statistics = BOMStatisticsSerializer()

    def get_orphans(self, obj):
        return [
            {'node_id': o.node_id, 'missing_parent_id': o.missing_parent_id}
            for o in obj.tree.orphans
        ]

    def get_items(self, obj):
        return BOMTreeNodeSerializer(obj.tree.nested(), many=True).data


class FieldChangeSerializer(serializers.Serializer):
    field = serializers.CharField()
    old_value = serializers.SerializerMethodField()
    new_value = serializers.SerializerMethodField()
    direction = serializers.CharField(source='direction.value')
    percentage_change = serializers.DecimalField(max_digits=20, decimal_places=2, allow_null=True)

    def get_old_value(self, obj):
        return _plain(obj.old_value)

    def get_new_value(self, obj):
        return _plain(obj.new_value)


class DifferenceSerializer(serializers.Serializer):
    type = serializers.CharField(source='type.value')
    component_id = serializers.CharField()
    component_path = serializers.ListField(child=serializers.CharField())
    source = ComponentNodeSerializer(allow_null=True)
    target = ComponentNodeSerializer(allow_null=True)
    changes = FieldChangeSerializer(many=True)
    cost_impact = serializers.DecimalField(max_digits=20, decimal_places=2)
    significance = serializers.CharField(source='significance.value')


class StructuralChangeSerializer(serializers.Serializer):
    type = serializers.CharField(source='type.value')
    component_id = serializers.CharField()
    component_path = serializers.ListField(child=serializers.CharField())
    old_value = serializers.IntegerField()
    new_value = serializers.IntegerField()


class DiffStatisticsSerializer(serializers.Serializer):
    total_items = serializers.IntegerField()
    added_items = serializers.IntegerField()
    removed_items = serializers.IntegerField()
    modified_items = serializers.IntegerField()
    unchanged_items = serializers.IntegerField()
    source_total_cost = serializers.DecimalField(max_digits=20, decimal_places=2)
    target_total_cost = serializers.DecimalField(max_digits=20, decimal_places=2)
    cost_difference = serializers.DecimalField(max_digits=20, decimal_places=2)
    cost_change_percentage = serializers.DecimalField(max_digits=20, decimal_places=2)
    major_changes = serializers.IntegerField()


class DiffResultSerializer(serializers.Serializer):
    differences = DifferenceSerializer(many=True)
    structural_changes = StructuralChangeSerializer(many=True)
    statistics = DiffStatisticsSerializer()


class AttachResultSerializer(serializers.Serializer):
    ok = serializers.BooleanField()
    error = serializers.SerializerMethodField()
    path = serializers.ListField(child=serializers.CharField())

    def get_error(self, obj):
        return error_payload(obj.error) if obj.error is not None else None


class StructureIssueSerializer(serializers.Serializer):
    type = serializers.CharField()
    item_id = serializers.CharField(allow_null=True)
    message = serializers.CharField()


class StructureReportSerializer(serializers.Serializer):
    bom_id = serializers.CharField()
    items_count = serializers.IntegerField()
    valid = serializers.BooleanField()
    issues = StructureIssueSerializer(many=True)


class CopyResultSerializer(serializers.Serializer):
    bom_id = serializers.CharField(source='header.id')
    product_id = serializers.CharField(source='header.product_id')
    version = serializers.CharField(source='header.version')
    copied_ids = serializers.ListField(child=serializers.CharField())
    skipped_ids = serializers.ListField(child=serializers.CharField())
    total_cost = serializers.DecimalField(source='statistics.total_cost', max_digits=20, decimal_places=2)
    source_total_cost = serializers.DecimalField(max_digits=20, decimal_places=2)
    cost_difference = serializers.DecimalField(max_digits=20, decimal_places=2)
    cost_change_percentage = serializers.DecimalField(max_digits=20, decimal_places=2)
    adjusted_items_count = serializers.IntegerField()
    warnings = serializers.ListField(child=serializers.CharField())
