"""
Shared kernel: exceptions, value objects, domain events and the base aggregate.
"""
