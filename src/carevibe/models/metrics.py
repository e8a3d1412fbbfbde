"""Biometric fields, stored metric documents and lookup results."""
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator


class MetricField(str, Enum):
    """Known biometric fields. Values are the document field names."""
    WEIGHT = "weightKg"
    BMI = "bmi"
    SLEEP_DURATION = "sleepDurationHr"
    REM_SLEEP = "remSleepHr"
    SLEEP_INTERRUPTIONS = "sleepInterruptions"
    STEPS = "stepCount"
    EXERCISE_DURATION = "exerciseDurationMin"
    STRESS_LEVEL = "stressLevel"
    RESTING_HEART_RATE = "restingHeartRateBpm"
    BLOOD_PRESSURE = "bloodPressureMmHg"
    SPO2 = "spo2Percent"
    BODY_TEMPERATURE = "bodyTemperatureC"
    CALORIES_BURNED = "caloriesBurned"
    ACTIVITY_LEVEL = "physicalActivityLevel"
    SMOKING_STATUS = "smokingStatus"
    ALCOHOL_CONSUMPTION = "alcoholConsumption"


# int or float, as stored
Number = Union[int, float]
MetricValue = Union[int, float, str]

METRIC_ATTRIBUTES = (
    "weight_kg", "bmi", "sleep_duration_hr", "rem_sleep_hr", "sleep_interruptions",
    "step_count", "exercise_duration_min", "stress_level", "resting_heart_rate_bpm",
    "blood_pressure_mm_hg", "spo2_percent", "body_temperature_c", "calories_burned",
    "physical_activity_level", "smoking_status", "alcohol_consumption",
)


class HealthMetricDocument(BaseModel):
    """One day of health metrics for a user, as stored in the document database.

    Every metric is optional; documents routinely carry only a subset.
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    user_uid: Optional[str] = Field(default=None, alias="userUid")
    date: Optional[datetime] = None
    weight_kg: Optional[Number] = Field(default=None, alias="weightKg")
    bmi: Optional[Number] = None
    sleep_duration_hr: Optional[Number] = Field(default=None, alias="sleepDurationHr")
    rem_sleep_hr: Optional[Number] = Field(default=None, alias="remSleepHr")
    sleep_interruptions: Optional[Number] = Field(default=None, alias="sleepInterruptions")
    step_count: Optional[Number] = Field(default=None, alias="stepCount")
    exercise_duration_min: Optional[Number] = Field(default=None, alias="exerciseDurationMin")
    stress_level: Optional[Number] = Field(default=None, alias="stressLevel")
    resting_heart_rate_bpm: Optional[Number] = Field(default=None, alias="restingHeartRateBpm")
    blood_pressure_mm_hg: Optional[str] = Field(default=None, alias="bloodPressureMmHg")
    spo2_percent: Optional[Number] = Field(default=None, alias="spo2Percent")
    body_temperature_c: Optional[Number] = Field(default=None, alias="bodyTemperatureC")
    calories_burned: Optional[Number] = Field(default=None, alias="caloriesBurned")
    physical_activity_level: Optional[str] = Field(default=None, alias="physicalActivityLevel")
    smoking_status: Optional[str] = Field(default=None, alias="smokingStatus")
    alcohol_consumption: Optional[str] = Field(default=None, alias="alcoholConsumption")

    @field_validator(*METRIC_ATTRIBUTES, mode="wrap")
    @classmethod
    def _drop_unreadable(cls, value: Any, handler):
        """An unreadable metric is treated as missing; the rest of the document stays."""
        try:
            return handler(value)
        except ValidationError:
            return None

    def metric_values(self) -> Dict[str, MetricValue]:
        """Return the present metrics keyed by document field name."""
        data = self.model_dump(by_alias=True, exclude_none=True)
        return {name: data[name] for name in (m.value for m in MetricField) if name in data}


@dataclass
class MetricRecord:
    """A stored document reduced to what lookups need."""
    user_uid: str
    recorded_at: datetime
    values: Dict[str, MetricValue] = field(default_factory=dict)

    def get(self, metric: MetricField) -> Optional[MetricValue]:
        return self.values.get(metric.value)

    @classmethod
    def from_document(cls, doc: HealthMetricDocument) -> "MetricRecord":
        if doc.user_uid is None or doc.date is None:
            raise ValueError("Health metric document requires userUid and date")
        return cls(user_uid=doc.user_uid, recorded_at=doc.date, values=doc.metric_values())


@dataclass(frozen=True)
class MetricReading:
    """A single value and the moment it was recorded."""
    value: Any
    date: datetime
    # Days between the requested date and the reading (nearest-date lookups)
    offset: int = 0


@dataclass(frozen=True)
class MetricAverageResult:
    average: float
    count: int
    days: int


@dataclass(frozen=True)
class MetricTrendResult:
    trend: str  # increasing, decreasing, stable
    slope: float
    latest: Any
    oldest: Any
    count: int
    days: int


@dataclass(frozen=True)
class MetricAggregateResult:
    value: Number
    count: int
    aggregation: str


def as_date(value: Union[date, datetime]) -> date:
    """Collapse a datetime to its calendar date."""
    if isinstance(value, datetime):
        return value.date()
    return value
