"""
SubText Backend — OCR & Analysis Schemas
==========================================

The OCR response keeps the OCR.space-style shape the client was built
against: {"ParsedResults": [{"ParsedText": "..."}], "cached": true?}.
The analysis response carries both a plain `analysis` field and a
chat-completion shaped `choices` list.
"""

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ParsedResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    parsed_text: str = Field(alias="ParsedText")


class OcrResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    parsed_results: List[ParsedResult] = Field(alias="ParsedResults")
    cached: Optional[bool] = Field(default=None, description="Present and true on cache hits")


class ExtractRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    raw_text: Optional[Any] = Field(default=None, alias="rawText")


class AnalyzeRequest(BaseModel):
    # Any: AnalysisService reports the precise 400 (missing / not a list / empty)
    messages: Optional[Any] = None


class ChoiceMessage(BaseModel):
    role: str = "assistant"
    content: str


class Choice(BaseModel):
    message: ChoiceMessage


class CompletionResponse(BaseModel):
    choices: List[Choice]


class AnalyzeResponse(CompletionResponse):
    analysis: str
