from damage_assessor.db.models.assessment import Assessment

__all__ = [
    "Assessment",
]
