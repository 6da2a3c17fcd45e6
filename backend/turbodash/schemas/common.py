from typing import Annotated

from pydantic import BaseModel, ConfigDict, PlainSerializer, PlainValidator

from turbodash.models.enums import IssueCode
from turbodash.utils.periods import Period


def _parse_period(value: object) -> Period:
    try:
        return Period.parse(value)  # type: ignore[arg-type]
    except TypeError as exc:
        raise ValueError(f"Unsupported period value: {value!r}") from exc


# accepts Period, date or "YYYY-MM"; dumps as "YYYY-MM"
PeriodField = Annotated[
    Period,
    PlainValidator(_parse_period),
    PlainSerializer(str, return_type=str),
]


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True, use_enum_values=True)


class DataIssueOut(ORMModel):
    code: IssueCode
    message: str
    subject_id: str | None = None
