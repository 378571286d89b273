from django.db import models

class AgencyRole(models.TextChoices):
    ADMIN      = "ADMIN",      "Admin"
    MANAGER    = "MANAGER",    "Manager"
    EMPLOYEE   = "EMPLOYEE",   "Employee"
    ACCOUNTANT = "ACCOUNTANT", "Accountant"


class JobTitle(models.TextChoices):
    COMMERCIAL                  = "COMMERCIAL",                  "Commercial"
    COMPTABLE                   = "COMPTABLE",                   "Comptable"
    CAISSIERE                   = "CAISSIERE",                   "Caissière"
    RELATION_PUBLIQUE           = "RELATION_PUBLIQUE",           "Relation publique"
    APPROVISIONNEMENT_MARKETING = "APPROVISIONNEMENT_MARKETING", "Approvisionnement marketing"
    AGENT_TERRAIN               = "AGENT_TERRAIN",               "Agent de terrain"
    DIRECTION_GENERALE          = "DIRECTION_GENERALE",          "Direction générale"


ALL_ROLES = [AgencyRole.ADMIN, AgencyRole.MANAGER, AgencyRole.EMPLOYEE, AgencyRole.ACCOUNTANT]
