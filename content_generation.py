"""
AI-assisted authoring workflows for summaries and quizzes.

Each workflow builds a prompt, asks the model for JSON constrained by a fixed
schema, and runs a strict parse step on the result. Nothing here touches
canonical state: callers receive parsed values or a GenerationError, and the
content they hold stays as it was.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from ai_resilience import generate_structured, generate_text
from errors import GenerationError, ValidationError
from media import strip_html
from models import Question

logger = logging.getLogger(__name__)

QUIZ_LENGTH = 5
ALTERNATIVE_COUNT = 4

_H1_RE = re.compile(r"<h1[\s>]", re.IGNORECASE)

# ── Result schemas ──────────────────────────────────────────────────

ENHANCED_CONTENT_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "enhancedContent": {
            "type": "STRING",
            "description": (
                "The improved summary body as well-formed HTML. Use tags such as "
                "<h2>, <h3>, <p>, <ul>, <li> and <strong>. Tabular data goes in "
                "<table>, <thead>, <tbody>, <tr>, <th> and <td>. Do not include an <h1> tag."
            ),
        },
    },
    "required": ["enhancedContent"],
}

QUIZ_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "questions": {
            "type": "ARRAY",
            "description": "Exactly 5 multiple-choice questions.",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "questionText": {"type": "STRING"},
                    "alternatives": {"type": "ARRAY", "items": {"type": "STRING"}},
                    "correctAlternativeIndex": {
                        "type": "INTEGER",
                        "description": "Index (0-3) of the correct alternative",
                    },
                    "explanation": {
                        "type": "STRING",
                        "description": "Comment on the correct answer",
                    },
                },
                "required": ["questionText", "alternatives", "correctAlternativeIndex", "explanation"],
            },
        },
    },
    "required": ["questions"],
}

EXPLANATION_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "explanation": {
            "type": "STRING",
            "description": (
                "A short, clear explanation (1-2 sentences) of why the alternative "
                "is correct, based on the given context."
            ),
        },
    },
    "required": ["explanation"],
}

# ── Prompts ─────────────────────────────────────────────────────────

ENHANCE_PROMPT = """You are an expert academic writer for medicine. Improve the body text below:
make it clearer and more fluent and rewrite it to avoid plagiarism without losing any of the
original information. Keep the structure of subheadings (h2, h3), paragraphs and lists. If there
is tabular data, format it as an HTML table. The result MUST be a JSON object containing only the
HTML of the improved content.

IMPORTANT: do NOT include a main title (<h1> tag). The title already exists and is shown
separately. Focus only on the body text provided.

Text to improve: \"{text}\""""

UPDATE_PROMPT = """You are an expert medical writer. Update the summary below with the new
information from the lecture, integrating it cohesively, improving clarity and keeping the HTML
format.

Current summary (HTML):
```html
{summary_html}
```

New information to add or integrate:
\"{new_information}\"

Return the complete updated summary as HTML."""

TRANSCRIBE_PROMPT = "Transcribe this audio to text in academic medical language:"

QUIZ_PROMPT = 'Based on the following summary about "{title}", generate a quiz. Summary: "{text}".'

EXPLAIN_PROMPT = (
    'Summary context: "{context}". Question: "{question}". Correct answer: "{answer}". '
    "Briefly explain why this is the correct answer."
)


# ── Strict parse steps ──────────────────────────────────────────────


def parse_enhanced_content(data: dict) -> str:
    content = data.get("enhancedContent")
    if not isinstance(content, str) or not content.strip():
        raise GenerationError("The AI response did not contain any summary content.")
    if _H1_RE.search(content):
        raise GenerationError("The AI response contained a main title (<h1>), which is not allowed.")
    return content.strip()


def parse_quiz(data: dict) -> list[Question]:
    raw = data.get("questions")
    if not isinstance(raw, list) or len(raw) != QUIZ_LENGTH:
        raise GenerationError(f"The AI must return exactly {QUIZ_LENGTH} questions.")

    questions = []
    for i, item in enumerate(raw, 1):
        if not isinstance(item, dict):
            raise GenerationError(f"Question {i} is malformed.")
        text = item.get("questionText")
        alternatives = item.get("alternatives")
        correct = item.get("correctAlternativeIndex")
        if not isinstance(text, str) or not text.strip():
            raise GenerationError(f"Question {i} has no text.")
        if (not isinstance(alternatives, list) or len(alternatives) != ALTERNATIVE_COUNT
                or not all(isinstance(a, str) and a.strip() for a in alternatives)):
            raise GenerationError(f"Question {i} must have exactly {ALTERNATIVE_COUNT} alternatives.")
        if isinstance(correct, bool) or not isinstance(correct, int) or not 0 <= correct < ALTERNATIVE_COUNT:
            raise GenerationError(f"Question {i} has an invalid correct alternative index.")
        explanation = item.get("explanation", "")
        questions.append(Question(
            text=text.strip(),
            alternatives=[a.strip() for a in alternatives],
            correct_index=correct,
            explanation=explanation.strip() if isinstance(explanation, str) else "",
        ))
    return questions


def parse_explanation(data: dict) -> str:
    explanation = data.get("explanation")
    if not isinstance(explanation, str) or not explanation.strip():
        raise GenerationError("The AI returned an empty explanation.")
    return explanation.strip()


# ── Pure helpers ────────────────────────────────────────────────────


def build_new_information(transcript: str = "", notes: str = "") -> str:
    """Combine a lecture transcript and pasted notes into one prompt block."""
    transcript = (transcript or "").strip()
    notes = (notes or "").strip()
    if not transcript and not notes:
        raise ValidationError("Provide an audio file or some text with the new information.")
    parts = []
    if transcript:
        parts.append(f'Information from the transcribed audio:\n"""{transcript}"""')
    if notes:
        parts.append(f'Information from the provided text:\n"""{notes}"""')
    return "\n\n".join(parts)


@dataclass
class AnswerCheck:
    correct: bool
    chosen_index: int
    correct_index: int
    correct_alternative: str

    def to_dict(self) -> dict:
        return {
            "correct": self.correct,
            "chosen_index": self.chosen_index,
            "correct_index": self.correct_index,
            "correct_alternative": self.correct_alternative,
        }


def check_answer(question: Question, chosen_index: int) -> AnswerCheck:
    if not 0 <= chosen_index < len(question.alternatives):
        raise ValidationError("Choose one of the listed alternatives.")
    return AnswerCheck(
        correct=chosen_index == question.correct_index,
        chosen_index=chosen_index,
        correct_index=question.correct_index,
        correct_alternative=question.alternatives[question.correct_index],
    )


# ── Workflows ───────────────────────────────────────────────────────


class ContentGenerator:
    """Runs the authoring workflows against one provider/model pair."""

    def __init__(self, provider: str = "gemini", model: str = "gemini-2.5-flash") -> None:
        self.provider = provider
        self.model = model

    def _ask(self, prompt: str | list, schema: dict) -> dict:
        return generate_structured(self.provider, self.model, prompt, schema)

    def enhance(self, raw_text: str) -> str:
        if not (raw_text or "").strip():
            raise ValidationError("Paste some text to enhance.")
        data = self._ask(ENHANCE_PROMPT.format(text=raw_text.strip()), ENHANCED_CONTENT_SCHEMA)
        return parse_enhanced_content(data)

    def update_from_media(self, summary_html: str, new_information: str) -> str:
        if not (new_information or "").strip():
            raise ValidationError("There is no new information to merge.")
        prompt = UPDATE_PROMPT.format(summary_html=summary_html or "", new_information=new_information)
        return parse_enhanced_content(self._ask(prompt, ENHANCED_CONTENT_SCHEMA))

    def transcribe_audio(self, data: bytes, mime_type: str) -> str:
        if not data:
            raise ValidationError("The audio file is empty.")
        text = generate_text(
            self.provider, self.model,
            [TRANSCRIBE_PROMPT, {"mime_type": mime_type or "audio/mpeg", "data": data}],
        )
        if not text:
            raise GenerationError("Audio transcription failed.")
        logger.info("Transcribed %d bytes of %s audio", len(data), mime_type)
        return text

    def generate_quiz(self, title: str, summary_html: str) -> list[Question]:
        text = strip_html(summary_html)
        if not text:
            raise ValidationError("The summary has no content to build a quiz from.")
        data = self._ask(QUIZ_PROMPT.format(title=title, text=text), QUIZ_SCHEMA)
        return parse_quiz(data)

    def explain_answer(self, summary_html: str, question_text: str, correct_alternative: str) -> str:
        prompt = EXPLAIN_PROMPT.format(
            context=strip_html(summary_html), question=question_text, answer=correct_alternative,
        )
        return parse_explanation(self._ask(prompt, EXPLANATION_SCHEMA))
