from __future__ import annotations

from datetime import datetime

from pydantic import ConfigDict, Field

from damage_assessor.common.schemas import CamelModel


class GeoPoint(CamelModel):
    model_config = ConfigDict(frozen=True)

    latitude: float
    longitude: float


class ExtractedMetadata(CamelModel):
    location: GeoPoint | None = None
    orientation: int | None = None
    timestamp: datetime | None = None


class PhotoMetadata(CamelModel):
    model_config = ConfigDict(frozen=True)

    name: str
    relative_path: str
    url: str
    location: GeoPoint | None = None
    orientation: int | None = None
    timestamp: datetime


class DamageDetails(CamelModel):
    damage_type: str | None = None
    treatment: str | None = None
    dimensions: str | None = None
    cost_aud: float | None = Field(default=None, alias="costAUD")


class PhotoSet(CamelModel):
    model_config = ConfigDict(frozen=True)

    report_id: str = Field(alias="damageId")
    damage_photos: tuple[PhotoMetadata, ...] = ()
    precondition_photos: tuple[PhotoMetadata, ...] = ()
    completion_photos: tuple[PhotoMetadata, ...] = ()
    reference_location: GeoPoint | None = None
    damage_details: DamageDetails | None = None

    def with_details(self, details: DamageDetails | None) -> PhotoSet:
        return self.model_copy(update={"damage_details": details})


class ColumnMapping(CamelModel):
    """Spreadsheet header chosen for each details field.

    ``None`` means "use the inferred header"; an empty string means the field
    is deliberately left unmapped.
    """

    damage_id: str | None = None
    damage_type: str | None = None
    treatment: str | None = None
    dimensions: str | None = None
    cost_aud: str | None = Field(default=None, alias="costAUD")
    length: str | None = None
    width: str | None = None
    height: str | None = None


class DetailsParseResult(CamelModel):
    details_by_id: dict[str, DamageDetails] = Field(default_factory=dict)
    source_file_name: str | None = None
    error: str | None = None


class DetailsHeadersResult(CamelModel):
    headers: list[str] = Field(default_factory=list)
    source_file_name: str | None = None
    error: str | None = None


class IngestionProgress(CamelModel):
    processed: int
    total: int


class DetailsSummary(CamelModel):
    source_file_name: str
    matched_count: int
    missing_in_details: list[str] = Field(default_factory=list)
    unmatched_in_details: list[str] = Field(default_factory=list)


class IngestionResult(CamelModel):
    photo_sets: list[PhotoSet] = Field(default_factory=list)
    details_source: str | None = None
    details_summary: DetailsSummary | None = None
    errors: list[str] = Field(default_factory=list)
