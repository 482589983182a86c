"""Request bodies for the HTTP API (camelCase on the wire)."""

from datetime import date

from pydantic import BaseModel, ConfigDict, Field

from herald.scheduling.service import ScheduleRequest
from herald.scheduling.types import TriggerPayload


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class TriggerBody(_CamelModel):
    schedule_id: str = Field(alias="scheduleId", min_length=1)
    owner_id: str = Field(alias="ownerId", min_length=1)
    is_first_firing: bool = Field(default=False, alias="isFirstFiring")
    cron_expression: str | None = Field(default=None, alias="cronExpression")

    def to_payload(self) -> TriggerPayload:
        return TriggerPayload(
            schedule_id=self.schedule_id,
            owner_id=self.owner_id,
            is_first_firing=self.is_first_firing,
            cron_expression=self.cron_expression,
        )


class CreateScheduleBody(_CamelModel):
    owner_id: str = Field(alias="ownerId", min_length=1)
    title: str = ""
    content: str
    cadence: str
    start_date: date = Field(alias="startDate")
    start_time: str = Field(alias="startTime")
    timezone: str = "UTC"
    end_date: date | None = Field(default=None, alias="endDate")
    target_type: str = Field(default="all", alias="targetType")
    target_ids: list[str] = Field(default_factory=list, alias="targetIds")
    day_of_week: int | None = Field(default=None, alias="dayOfWeek", ge=0, le=6)
    day_of_month: int | None = Field(default=None, alias="dayOfMonth", ge=1, le=28)

    def to_request(self) -> ScheduleRequest:
        return ScheduleRequest(
            owner_id=self.owner_id,
            title=self.title,
            content=self.content,
            cadence=self.cadence,
            start_date=self.start_date,
            start_time=self.start_time,
            timezone=self.timezone,
            end_date=self.end_date,
            target_type=self.target_type,
            target_ids=self.target_ids,
            day_of_week=self.day_of_week,
            day_of_month=self.day_of_month,
        )
