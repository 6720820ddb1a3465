from typing import Literal

from models.dynamodb import ApiModel

TimeRange = Literal["1d", "1w", "1m", "3m", "6m", "1y", "5y", "all"]


class PerformanceQuery(ApiModel):
    time_range: TimeRange = "1y"
