"""
Provinces module.

- Provinces CRUD (list, create, delete)
- JSON export of a province with its stakeholders, and import of the same document
"""
