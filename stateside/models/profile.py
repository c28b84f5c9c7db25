"""Applicant profile — the filter state every projection starts from."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from stateside.models.bulletin import Chargeability, EBCategory, MonthIndex, month_index


class CurrentStatus(str, Enum):
    OUTSIDE_US = "outside_us"
    F1 = "f1"
    OPT = "opt"
    H1B = "h1b"
    TN = "tn"
    OTHER = "other"


class Education(str, Enum):
    HIGHSCHOOL = "highschool"
    BACHELORS = "bachelors"
    MASTERS = "masters"
    PHD = "phd"


class Experience(str, Enum):
    LT2 = "lt2"
    TWO_TO_FIVE = "2to5"
    GT5 = "gt5"


class CountryOfBirth(str, Enum):
    CANADA = "canada"
    MEXICO = "mexico"
    INDIA = "india"
    CHINA = "china"
    OTHER = "other"


_CHARGEABILITY: dict[CountryOfBirth, Chargeability] = {
    CountryOfBirth.INDIA: Chargeability.INDIA,
    CountryOfBirth.CHINA: Chargeability.CHINA,
}


class PriorityDate(BaseModel):
    """A priority date at month granularity, as bulletins use."""

    model_config = ConfigDict(frozen=True)

    month: int = Field(ge=1, le=12)
    year: int = Field(ge=1900, le=2200)

    @property
    def month_index(self) -> MonthIndex:
        return month_index(self.year, self.month)


class FilterState(BaseModel):
    """Structured applicant profile.

    Immutable per computation and owned by the caller.  Every optional field
    has a defined absent behavior: an absent priority date means "filing
    fresh", an absent category means "portable to any EB category".
    """

    model_config = ConfigDict(frozen=True)

    current_status: CurrentStatus = CurrentStatus.OUTSIDE_US
    education: Education = Education.BACHELORS
    experience: Experience = Experience.LT2
    is_stem: bool = False
    country_of_birth: CountryOfBirth = CountryOfBirth.OTHER
    is_canadian_or_mexican_citizen: bool = False

    # Special circumstances
    has_extraordinary_ability: bool = False
    is_outstanding_researcher: bool = False
    is_executive: bool = False
    is_married_to_us_citizen: bool = False
    has_investment_capital: bool = False

    # Already-established priority date
    has_approved_i140: bool = False
    existing_priority_date: PriorityDate | None = None
    existing_priority_date_category: EBCategory | None = None
    needs_new_perm: bool = False

    @property
    def chargeability(self) -> Chargeability:
        return _CHARGEABILITY.get(self.country_of_birth, Chargeability.ALL_OTHER)

    @property
    def is_tn_eligible(self) -> bool:
        return (
            self.country_of_birth in (CountryOfBirth.CANADA, CountryOfBirth.MEXICO)
            or self.is_canadian_or_mexican_citizen
        )

    @property
    def has_established_priority_date(self) -> bool:
        return self.has_approved_i140 and self.existing_priority_date is not None
