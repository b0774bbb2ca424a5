"""HTTP clients for services the assessor depends on.

All clients implement ``BaseIntegration``.
"""

from damage_assessor.integrations.assessment_api import AssessmentApiClient
from damage_assessor.integrations.base import BaseIntegration

__all__ = [
    "AssessmentApiClient",
    "BaseIntegration",
]
