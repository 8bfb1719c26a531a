"""Deck analysis, question and report models"""

from typing import List, Literal

from pydantic import BaseModel, Field


class SlideAnalysis(BaseModel):
    """Model verdict for one slide"""
    slide_index: int
    slide_text: str
    credibility_score: float = 0
    weaknesses: List[str] = Field(default_factory=list)
    flags: List[str] = Field(default_factory=list)


class VCQuestion(BaseModel):
    """Question a persona would ask about a slide"""
    slide_index: int
    vc: str
    question: str


class ScoredAnswer(BaseModel):
    """Founder answer graded 0-100"""
    score: float = Field(0, ge=0, le=100)
    label: Literal["red", "yellow", "green"] = "red"
    explanation: str = ""
    improvement: str = ""


class HeatmapCell(BaseModel):
    slide_index: int
    score: float


class Vulnerability(BaseModel):
    slide_index: int
    issue: str


class PersonaQuestions(BaseModel):
    vc: str
    questions: List[VCQuestion] = Field(default_factory=list)


class FinalReport(BaseModel):
    """Full deck report"""
    slides: List[SlideAnalysis]
    heatmap: List[HeatmapCell]
    top_vulnerabilities: List[Vulnerability]
    questions: List[PersonaQuestions]
