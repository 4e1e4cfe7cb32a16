"""
Runtime schema introspection.

- catalog.py: SchemaCatalog (information_schema probe with per-table cache)
- descriptors.py: TableDescriptor / RelationDescriptor value objects
- soft_delete.py: SoftDeletePolicy (visibility predicate and capability checks)
- relations.py: RelationSpec / LookupSpec candidate resolution and JSON aggregation
"""

from freight.schema.catalog import SchemaCatalog
from freight.schema.descriptors import RelationDescriptor, TableDescriptor
from freight.schema.relations import (
    LookupDescriptor,
    LookupSpec,
    RelationSpec,
    resolve_lookup,
    resolve_relation,
)
from freight.schema.soft_delete import SoftDeletePolicy

__all__ = [
    "SchemaCatalog",
    "TableDescriptor",
    "RelationDescriptor",
    "SoftDeletePolicy",
    "RelationSpec",
    "LookupSpec",
    "LookupDescriptor",
    "resolve_relation",
    "resolve_lookup",
]
