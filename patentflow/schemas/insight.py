from typing import List, Literal, Union

from pydantic import BaseModel, Field, model_validator


class InsightRequest(BaseModel):
    query: str = Field(min_length=1, description="Natural language question about the projects")


class ChartPoint(BaseModel):
    name: str
    value: float


class InsightResponse(BaseModel):
    """Either a text answer or bar-chart data."""
    responseType: Literal["text", "chart"]
    data: Union[str, List[ChartPoint]]

    @model_validator(mode="after")
    def data_matches_type(self):
        if self.responseType == "text" and not isinstance(self.data, str):
            raise ValueError("text responses carry a string")
        if self.responseType == "chart" and isinstance(self.data, str):
            raise ValueError("chart responses carry a list of {name, value} points")
        return self
