"""
Pitch Analyzer - Slide Critique, Persona Questions and Answer Scoring

Every model call goes through the `complete` callable handed in by the
service, so these helpers are cached, priced and tracked like any other
request. Unparseable model output is logged and surfaced as None.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, List, Optional

from pitchintel.analysis.parsing import parse_json_object
from pitchintel.analysis.personas import PERSONAS, get_persona
from pitchintel.llm.errors import InputTooLargeError, MalformedModelOutputError, ProviderError
from pitchintel.models.analysis import (
    FinalReport,
    HeatmapCell,
    PersonaQuestions,
    ScoredAnswer,
    SlideAnalysis,
    VCQuestion,
    Vulnerability,
)
from pitchintel.models.completion import CompletionResult

logger = logging.getLogger(__name__)

CompleteFn = Callable[[str, List[Dict[str, str]], float], Awaitable[CompletionResult]]

VULNERABILITY_THRESHOLD = 80
UNANALYZED_WEAKNESS = "Slide could not be analyzed"

SLIDE_PROMPT = """
Act like a critical VC investor. Given the content of this slide:

"{slide_text}"

Output a JSON object with:
- credibility_score: 0-100 (how believable is this slide?)
- weaknesses: array of short descriptions of weak/missing arguments
- flags: array of claims that need more validation"""

QUESTION_PROMPT = """
Given this slide content:
"{slide_text}"

And these issues:
Weaknesses: {weaknesses}
Flags: {flags}

As a {persona}, generate ONE question you would ask the founder about this slide.
The question should be short, specific, and sound like a tough VC."""

SCORE_PROMPT = """Rate this VC pitch answer (0-100) on clarity, completeness, credibility.

Q: "{question}"
A: "{answer}"

Return JSON:
{{
"score": 78,
"explanation": "Brief explanation of strengths/weaknesses",
"improvement": "Key improvement suggestion",
"label": "yellow"
}}

Labels: red (0-49), yellow (50-79), green (80-100)"""


def label_for_score(score: float) -> str:
    if score >= 80:
        return "green"
    if score >= 50:
        return "yellow"
    return "red"


class PitchAnalyzer:
    """Deck analysis built on a tracked completion callable"""

    def __init__(
        self,
        complete: CompleteFn,
        slide_delay: float = 0.5,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.complete = complete
        self.slide_delay = slide_delay
        self._sleep = sleep

    async def analyze_slide(self, slide_text: str) -> Optional[Dict]:
        """Raw JSON verdict for one slide, or None"""
        prompt = SLIDE_PROMPT.format(slide_text=slide_text)
        try:
            result = await self.complete("analyze-slide", [{"role": "user", "content": prompt}], 0.7)
            return parse_json_object(result.content)
        except MalformedModelOutputError as e:
            logger.error("Error parsing slide analysis: %s", e)
        except (ProviderError, InputTooLargeError) as e:
            logger.error("Slide analysis failed: %s", e)
        return None

    async def analyze_deck(self, slides: List[str]) -> List[SlideAnalysis]:
        """Analyze slides in order; failed slides score 0"""
        results: List[SlideAnalysis] = []

        for index, text in enumerate(slides):
            verdict = await self.analyze_slide(text)
            if verdict is not None:
                results.append(SlideAnalysis(
                    slide_index=index,
                    slide_text=text,
                    credibility_score=_as_score(verdict.get("credibility_score")),
                    weaknesses=_as_strings(verdict.get("weaknesses")),
                    flags=_as_strings(verdict.get("flags")),
                ))
            else:
                results.append(SlideAnalysis(
                    slide_index=index,
                    slide_text=text,
                    credibility_score=0,
                    weaknesses=[UNANALYZED_WEAKNESS],
                ))

            # Spread calls out to stay clear of provider rate limits
            if self.slide_delay and index < len(slides) - 1:
                await self._sleep(self.slide_delay)

        return results

    async def generate_questions(
        self,
        analyses: List[SlideAnalysis],
        persona_key: str,
    ) -> List[VCQuestion]:
        """One question per slide from the persona; failures are skipped"""
        persona = get_persona(persona_key)
        if persona is None:
            raise ValueError(f"Unknown persona: {persona_key}")

        questions: List[VCQuestion] = []
        for slide in analyses:
            prompt = QUESTION_PROMPT.format(
                slide_text=slide.slide_text,
                weaknesses="; ".join(slide.weaknesses),
                flags="; ".join(slide.flags),
                persona=persona.key.replace("_", " "),
            )
            messages = [
                {"role": "system", "content": persona.question_prompt},
                {"role": "user", "content": prompt},
            ]
            try:
                result = await self.complete("generate-questions", messages, 0.7)
            except (ProviderError, InputTooLargeError) as e:
                logger.error("Error generating question for slide %d: %s", slide.slide_index, e)
                continue

            text = result.content.strip()
            if text:
                questions.append(VCQuestion(slide_index=slide.slide_index, vc=persona.key, question=text))

        return questions

    async def score_answer(self, question: str, answer: str) -> Optional[ScoredAnswer]:
        prompt = SCORE_PROMPT.format(question=question, answer=answer)
        try:
            result = await self.complete("score-answer", [{"role": "user", "content": prompt}], 0.7)
            parsed = parse_json_object(result.content)
        except MalformedModelOutputError as e:
            logger.error("Failed to parse scored answer: %s", e)
            return None
        except (ProviderError, InputTooLargeError) as e:
            logger.error("Answer scoring failed: %s", e)
            return None

        score = _as_score(parsed.get("score"))
        label = parsed.get("label")
        if label not in ("red", "yellow", "green"):
            label = label_for_score(score)

        return ScoredAnswer(
            score=score,
            label=label,
            explanation=str(parsed.get("explanation") or ""),
            improvement=str(parsed.get("improvement") or ""),
        )

    async def build_report(self, slides: List[str]) -> FinalReport:
        analyses = await self.analyze_deck(slides)

        heatmap = [HeatmapCell(slide_index=s.slide_index, score=s.credibility_score) for s in analyses]

        vulnerabilities = [
            Vulnerability(slide_index=s.slide_index, issue=weakness)
            for s in analyses
            if s.credibility_score < VULNERABILITY_THRESHOLD
            for weakness in s.weaknesses
        ]

        questions = []
        for key in PERSONAS:
            questions.append(PersonaQuestions(
                vc=key,
                questions=await self.generate_questions(analyses, key),
            ))

        return FinalReport(
            slides=analyses,
            heatmap=heatmap,
            top_vulnerabilities=vulnerabilities,
            questions=questions,
        )


def _as_score(value) -> float:
    try:
        score = float(value)
    except (TypeError, ValueError):
        return 0.0
    return min(max(score, 0.0), 100.0)


def _as_strings(value) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value]
