from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class University(BaseModel):
    id: int
    slug: str = Field(min_length=1)
    name: str
    location: str = ""
    description: str = ""
    country: Optional[str] = None
    university_type: Optional[str] = Field(default=None, alias="universityType")
    status: str = "active"
    featured: bool = False
    founded: Optional[int] = None
    students: Optional[int] = Field(default=None, ge=0)
    ranking: Optional[int] = None
    website: Optional[str] = None
    logo: Optional[str] = None

    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)


class UniversityStats(BaseModel):
    total_universities: int = Field(default=0, alias="totalUniversities")
    featured_universities: int = Field(default=0, alias="featuredUniversities")
    total_countries: int = Field(default=0, alias="totalCountries")

    model_config = ConfigDict(populate_by_name=True)
