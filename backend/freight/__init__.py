"""
Schema-adaptive data access for the freight backend.

- schema: live table shapes, soft-delete policy, relation resolution
- query: filter compilation and pagination
- repositories: generic CRUD contract and the concrete freight repositories
"""
