"""
Stakeholders module.

- Stakeholders CRUD scoped to a province
- Tag assignment and tag filtering
- Contact/LinkedIn JSON export and import, personality profile upload
- Excel export of selected rows
"""
