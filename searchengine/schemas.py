from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from searchengine.errors import SearchEngineError


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class IndexingResponse(ApiModel):
    result: bool
    error: Optional[str] = None

    @classmethod
    def ok(cls) -> "IndexingResponse":
        return cls(result=True)

    @classmethod
    def failed(cls, error: SearchEngineError) -> "IndexingResponse":
        return cls(result=False, error=error.message)


class SearchData(ApiModel):
    site: str
    site_name: str
    uri: str
    title: str
    snippet: str
    relevance: float


class SearchResponse(ApiModel):
    result: bool
    error: Optional[str] = None
    count: int = 0
    data: Optional[List[SearchData]] = None

    @classmethod
    def of(cls, data: List[SearchData]) -> "SearchResponse":
        return cls(result=True, count=len(data), data=data)

    @classmethod
    def failed(cls, error: SearchEngineError) -> "SearchResponse":
        return cls(result=False, error=error.message)


class TotalStatistics(ApiModel):
    sites: int
    pages: int
    lemmas: int
    indexing: bool


class DetailedStatisticsItem(ApiModel):
    url: str
    name: str
    status: str
    status_time: int
    error: str = ""
    pages: int = 0
    lemmas: int = 0


class StatisticsData(ApiModel):
    total: TotalStatistics
    detailed: List[DetailedStatisticsItem]


class StatisticsResponse(ApiModel):
    result: bool = True
    statistics: StatisticsData
