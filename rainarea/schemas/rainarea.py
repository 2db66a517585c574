"""Rain-area API schemas."""

from pydantic import BaseModel, Field

from rainarea.models import Snapshot


class CoveragePercentage(BaseModel):
    """Share of pixels with any reflectivity."""

    all: float = Field(description="Percentage over the whole image")
    sg: float = Field(description="Percentage over the coverage mask region")


class RainAreaResponse(BaseModel):
    """Encoded radar snapshot."""

    id: str
    dt: int
    width: int
    height: int
    coverage_percentage: CoveragePercentage
    radar: str

    @classmethod
    def from_snapshot(cls, snapshot: Snapshot) -> "RainAreaResponse":
        return cls.model_validate(snapshot.to_dict())


class ErrorResponse(BaseModel):
    """Error body returned for any failed request."""

    error: str
