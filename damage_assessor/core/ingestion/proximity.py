from collections.abc import Sequence

from damage_assessor.core.ingestion.classifier import StageBuckets
from damage_assessor.core.ingestion.geo import distance_m
from damage_assessor.core.ingestion.schemas import GeoPoint, PhotoMetadata, PhotoSet

PROXIMITY_LIMIT = 10


def reference_location(damage_photos: Sequence[PhotoMetadata]) -> GeoPoint | None:
    """Location of the first damage photo that carries one."""
    return next((p.location for p in damage_photos if p.location is not None), None)


def select_closest(
    photos: Sequence[PhotoMetadata],
    reference: GeoPoint | None,
    limit: int = PROXIMITY_LIMIT,
) -> list[PhotoMetadata]:
    """Up to ``limit`` located photos nearest ``reference``, then every unlocated photo.

    Without a reference the photos are returned unchanged.
    """
    if reference is None:
        return list(photos)

    located = [p for p in photos if p.location is not None]
    unlocated = [p for p in photos if p.location is None]
    located.sort(key=lambda p: distance_m(reference, p.location))
    return located[:limit] + unlocated


def select_photo_set(report_id: str, buckets: StageBuckets[PhotoMetadata]) -> PhotoSet:
    reference = reference_location(buckets.damage)
    return PhotoSet(
        report_id=report_id,
        damage_photos=tuple(buckets.damage),
        precondition_photos=tuple(select_closest(buckets.precondition, reference)),
        completion_photos=tuple(select_closest(buckets.completion, reference)),
        reference_location=reference,
    )
