"""
Course schema definitions.

Design choices:
- Field names are snake_case in Python and keep the CMS camelCase names as aliases,
  so seed files and CMS payloads load unchanged (`studentsEnrolled`, `instructorBio`).
- `price` and `duration` stay free text as the CMS stores them; the query engine
  parses their numeric magnitude when it filters or sorts.
"""
from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class CourseWeek(BaseModel):
    week: int = Field(ge=1)
    topic: str
    description: str = ""


class Course(BaseModel):
    id: int
    slug: str = Field(min_length=1, description="URL-safe identifier used for lookups")
    title: str
    description: str = ""
    image: Optional[str] = None
    duration: str = Field(default="", description="Free text such as '12 weeks'")
    level: str = ""
    price: str = Field(default="", description="Free text such as 'NPR 25,000'")
    category: str = ""
    instructor: str = ""
    instructor_bio: Optional[str] = Field(default=None, alias="instructorBio")
    rating: float = Field(default=0.0, ge=0.0, le=5.0)
    students_enrolled: int = Field(default=0, ge=0, alias="studentsEnrolled")
    features: List[str] = Field(default_factory=list)
    curriculum: List[CourseWeek] = Field(default_factory=list)
    requirements: List[str] = Field(default_factory=list)
    what_you_will_learn: List[str] = Field(default_factory=list, alias="whatYouWillLearn")

    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)


class CourseCategory(BaseModel):
    id: str
    name: str
    count: int = Field(ge=0)


# Category shown first in the course filter; selecting it means "no category filter"
ALL_COURSES_CATEGORY = "All Courses"
