"""Tests for deck analysis, persona questions and answer scoring"""

import json

import pytest

from fakes import SleepRecorder
from pitchintel.analysis.analyzer import PitchAnalyzer, label_for_score
from pitchintel.analysis.parsing import parse_json_object
from pitchintel.analysis.personas import get_persona, list_personas
from pitchintel.llm.errors import MalformedModelOutputError, TransientProviderError
from pitchintel.models.analysis import SlideAnalysis
from pitchintel.models.completion import CompletionResult


class ScriptedComplete:
    """Returns queued contents per endpoint and records every call"""

    def __init__(self, **scripts):
        self.scripts = {endpoint: list(outputs) for endpoint, outputs in scripts.items()}
        self.calls = []

    async def __call__(self, endpoint, messages, temperature):
        self.calls.append((endpoint, messages, temperature))
        outputs = self.scripts.get(endpoint) or ["{}"]
        output = outputs.pop(0) if len(outputs) > 1 else outputs[0]
        if isinstance(output, Exception):
            raise output
        return CompletionResult(content=output, tokens_used=10, cost=0.0)


def verdict(score, weaknesses=(), flags=()):
    return json.dumps({
        "credibility_score": score,
        "weaknesses": list(weaknesses),
        "flags": list(flags),
    })


def test_parse_json_object_strips_code_fences():
    assert parse_json_object('```json\n{"score": 5}\n```') == {"score": 5}
    assert parse_json_object('{"score": 5}') == {"score": 5}


@pytest.mark.parametrize("text", ["", "not json", "[1, 2]"])
def test_parse_json_object_rejects_bad_output(text):
    with pytest.raises(MalformedModelOutputError):
        parse_json_object(text)


@pytest.mark.parametrize("score,label", [(0, "red"), (49, "red"), (50, "yellow"), (79, "yellow"), (80, "green"), (100, "green")])
def test_label_for_score(score, label):
    assert label_for_score(score) == label


@pytest.mark.asyncio
async def test_analyze_slide_returns_parsed_verdict():
    complete = ScriptedComplete(**{"analyze-slide": [verdict(72, ["No moat"])]})
    analyzer = PitchAnalyzer(complete, slide_delay=0)

    result = await analyzer.analyze_slide("We are the Uber for dogs")

    assert result["credibility_score"] == 72
    endpoint, messages, _ = complete.calls[0]
    assert endpoint == "analyze-slide"
    assert "We are the Uber for dogs" in messages[0]["content"]


@pytest.mark.asyncio
async def test_malformed_slide_output_is_none(caplog):
    analyzer = PitchAnalyzer(ScriptedComplete(**{"analyze-slide": ["I think it's great!"]}), slide_delay=0)

    assert await analyzer.analyze_slide("slide") is None
    assert "Error parsing slide analysis" in caplog.text


@pytest.mark.asyncio
async def test_analyze_deck_keeps_order_and_falls_back():
    complete = ScriptedComplete(**{"analyze-slide": [
        verdict(90, flags=["Verify ARR"]),
        TransientProviderError("upstream down", 503, 4),
        verdict(150, ["Too good"]),
    ]})
    sleeps = SleepRecorder()
    analyzer = PitchAnalyzer(complete, slide_delay=0.5, sleep=sleeps)

    results = await analyzer.analyze_deck(["intro", "market", "traction"])

    assert [r.slide_index for r in results] == [0, 1, 2]
    assert results[0].credibility_score == 90
    assert results[0].flags == ["Verify ARR"]
    assert results[1].credibility_score == 0
    assert results[1].weaknesses == ["Slide could not be analyzed"]
    # Scores are clamped to 0-100
    assert results[2].credibility_score == 100
    # Pause between slides, not after the last
    assert sleeps.delays == [0.5, 0.5]


@pytest.mark.asyncio
async def test_generate_questions_uses_persona_prompt():
    complete = ScriptedComplete(**{"generate-questions": ["  What is your CAC?  "]})
    analyzer = PitchAnalyzer(complete, slide_delay=0)
    analyses = [SlideAnalysis(slide_index=0, slide_text="We spend on ads", weaknesses=["CAC unknown"])]

    questions = await analyzer.generate_questions(analyses, "numbersHawk")

    assert len(questions) == 1
    assert questions[0].vc == "numbers_hawk"
    assert questions[0].question == "What is your CAC?"
    _, messages, _ = complete.calls[0]
    assert messages[0] == {"role": "system", "content": get_persona("numbers_hawk").question_prompt}
    assert "CAC unknown" in messages[1]["content"]


@pytest.mark.asyncio
async def test_generate_questions_unknown_persona():
    analyzer = PitchAnalyzer(ScriptedComplete(), slide_delay=0)
    with pytest.raises(ValueError):
        await analyzer.generate_questions([], "angel")


@pytest.mark.asyncio
async def test_generate_questions_skips_failed_slides():
    complete = ScriptedComplete(**{"generate-questions": [
        TransientProviderError("timeout", 408, 4),
        "Who buys this?",
    ]})
    analyzer = PitchAnalyzer(complete, slide_delay=0)
    analyses = [
        SlideAnalysis(slide_index=0, slide_text="a"),
        SlideAnalysis(slide_index=1, slide_text="b"),
    ]

    questions = await analyzer.generate_questions(analyses, "operator")

    assert [q.slide_index for q in questions] == [1]


@pytest.mark.asyncio
async def test_score_answer():
    payload = {"score": 62, "explanation": "Vague on churn", "improvement": "Quote cohort data", "label": "yellow"}
    analyzer = PitchAnalyzer(ScriptedComplete(**{"score-answer": [json.dumps(payload)]}), slide_delay=0)

    scored = await analyzer.score_answer("What's churn?", "Low")

    assert scored.score == 62
    assert scored.label == "yellow"
    assert scored.improvement == "Quote cohort data"


@pytest.mark.asyncio
async def test_score_answer_derives_missing_label():
    analyzer = PitchAnalyzer(ScriptedComplete(**{"score-answer": ['{"score": 30}']}), slide_delay=0)

    scored = await analyzer.score_answer("q", "a")

    assert scored.label == "red"
    assert scored.explanation == ""


@pytest.mark.asyncio
async def test_score_answer_malformed_output():
    analyzer = PitchAnalyzer(ScriptedComplete(**{"score-answer": ["n/a"]}), slide_delay=0)
    assert await analyzer.score_answer("q", "a") is None


@pytest.mark.asyncio
async def test_build_report():
    complete = ScriptedComplete(**{
        "analyze-slide": [verdict(85, ["Minor gap"]), verdict(40, ["No revenue", "No team"])],
        "generate-questions": ["Why you?"],
    })
    analyzer = PitchAnalyzer(complete, slide_delay=0)

    report = await analyzer.build_report(["team", "financials"])

    assert [(c.slide_index, c.score) for c in report.heatmap] == [(0, 85), (1, 40)]
    # Only slides under 80 contribute vulnerabilities
    assert [(v.slide_index, v.issue) for v in report.top_vulnerabilities] == [
        (1, "No revenue"),
        (1, "No team"),
    ]
    assert [group.vc for group in report.questions] == [p["key"] for p in list_personas()]
    assert all(len(group.questions) == 2 for group in report.questions)
