"""
BOM Domain - Bill of Materials graph engine.

This domain handles the hierarchical structure of products:
- Flat component lines are assembled into a validated tree
- Sub-assemblies reference other products that carry their own BOM
- Quantities and costs roll up through the hierarchy
- Two BOM versions can be compared line by line
"""
