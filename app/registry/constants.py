"""
Central constants for the stakeholder registry.
"""
from __future__ import annotations

ROLE_ADMIN = "admin"
ROLE_USER = "user"
VALID_ROLES = (ROLE_ADMIN, ROLE_USER)

USERNAME_MIN_LENGTH = 3
USERNAME_MAX_LENGTH = 64
PASSWORD_MIN_LENGTH = 6
TAG_NAME_MAX_LENGTH = 64
LEVEL_MAX_LENGTH = 32

# Keys accepted inside Stakeholder.datos_contacto
CONTACT_FIELDS = (
    "linkedin",
    "organizacion_principal",
    "otras_organizaciones",
    "persona_contacto",
    "email",
    "website",
    "telefono",
)

# Scalar keys accepted inside Stakeholder.datos_especificos_linkedin
LINKEDIN_TEXT_FIELDS = ("about_me", "headline", "otros_campos")
LINKEDIN_LIST_FIELDS = ("experiencia", "formacion")

# Keys of each experiencia/formacion entry
LINKEDIN_ENTRY_FIELDS = ("title", "company", "location", "start_date", "end_date", "description")

# Free-text stakeholder columns
STAKEHOLDER_TEXT_FIELDS = (
    "objetivos_generales",
    "intereses_expectativas",
    "recursos",
    "expectativas_comunicacion",
    "relaciones",
    "riesgos_conflictos",
)

# Short labels ("alto", "medio", "bajo"); stored as given
STAKEHOLDER_LEVEL_FIELDS = ("nivel_influencia", "nivel_interes")
