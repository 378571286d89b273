# staff/assignment.py
"""
Capabilities granted by a job title, independent of the API role.
"""
from common.roles import JobTitle

_CAPABILITIES = {
    JobTitle.COMMERCIAL: ["Encodage billets", "Suivi ventes", "Mise à jour de ses billets"],
    JobTitle.CAISSIERE: ["Encaissements", "Suivi créances", "Validation paiements"],
    JobTitle.COMPTABLE: ["Encaissements", "Suivi créances", "Validation paiements"],
    JobTitle.DIRECTION_GENERALE: ["Supervision globale", "Affectation équipes", "Validation stratégique"],
    JobTitle.RELATION_PUBLIQUE: ["Suivi partenaires", "Communication externe", "Coordination client"],
    JobTitle.APPROVISIONNEMENT_MARKETING: ["Support marketing", "Approvisionnement", "Coordination campagnes"],
}

_DEFAULT_CAPABILITIES = ["Opérations terrain", "Suivi activité", "Support équipe"]


def job_title_label(job_title):
    try:
        return JobTitle(job_title).label
    except ValueError:
        return job_title


def assignment_capabilities(job_title):
    return list(_CAPABILITIES.get(job_title, _DEFAULT_CAPABILITIES))


def can_sell_tickets(job_title) -> bool:
    return job_title in (JobTitle.COMMERCIAL, JobTitle.DIRECTION_GENERALE)


def can_process_payments(job_title) -> bool:
    return job_title in (JobTitle.COMPTABLE, JobTitle.CAISSIERE, JobTitle.DIRECTION_GENERALE)


def is_procurement_officer(job_title) -> bool:
    return job_title == JobTitle.APPROVISIONNEMENT_MARKETING
