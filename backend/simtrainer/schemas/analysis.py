from __future__ import annotations

from pydantic import BaseModel


class AnalyzeRequest(BaseModel):
    generate_recommendations: bool = True


class OverallPerformanceSchema(BaseModel):
    score: int
    grade: str
    summary: str


class SkillScoreSchema(BaseModel):
    score: int
    benchmark: int
    trend: str = "stable"
    reasoning: str = ""
    evidence: list[str] = []
    tips: list[str] = []


class KeyMomentSchema(BaseModel):
    type: str
    description: str


class ConversationAnalysisSchema(BaseModel):
    total_turns: int
    talk_time_ratio: float
    average_response_length: int
    questions_asked: int
    empathy_statements: int
    active_listening_indicators: int
    key_moments: list[KeyMomentSchema] = []


class RecommendationSchema(BaseModel):
    priority: str
    category: str
    title: str
    description: str
    actionableSteps: list[str] = []


class AnalysisResponse(BaseModel):
    session_id: str
    overall_performance: OverallPerformanceSchema
    skill_scores: dict[str, SkillScoreSchema]
    conversation_analysis: ConversationAnalysisSchema
    recommendations: list[RecommendationSchema] = []
    suggested_scenarios: list[str] = []
    evaluation_source: str = "llm"
