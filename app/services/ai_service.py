"""
Generative AI assistant backed by Gemini's OpenAI-compatible endpoint.

Every call is a single request/response: the prompt asks for a JSON object
matching a Pydantic schema and the reply is validated against it. There is no
retry; failures surface as AIServiceError.
"""

import base64
import json
import logging
from datetime import datetime
from typing import List, Optional, Type, TypeVar

from openai import OpenAI, OpenAIError
from pydantic import BaseModel, ValidationError

from app.core.config import settings
from app.core.exceptions import AIServiceError
from app.schemas.ai import AnswerResponse, EventAnalysis, EventDraft, Recommendations
from app.schemas.event import EventResponse

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

MAX_RECOMMENDATIONS = 3

JSON_INSTRUCTIONS = """Reply with a single JSON object and nothing else.
The object must validate against this JSON schema:
{schema}"""

ANSWER_PROMPT = """You are a helpful chatbot for a university campus. Your role is to answer questions about campus resources and events.

You have been provided with a list of current events. Use this list to answer any questions about what's happening on campus, such as "what events are there today?", "how many events are there?", or "tell me about the AI event".

If the user asks a general question not related to the events, answer it based on your general knowledge of campus resources.

Current Events Data:
{events}

Question: {question}"""

DRAFT_PROMPT = """You are an expert event planner's assistant. Your task is to extract structured event information from a block of text.

Today's date is {current_date}. Use this to correctly interpret relative dates (e.g., "tomorrow", "next Friday").

From the following text, extract the event's title, a detailed description, the specific venue (e.g., "Library Room 4B", "Grand Hall"), the city (location), the full date and time, a Google Maps link if provided, a registration link if provided, and the event type.

If the event is organised on campus or for the college's own students (e.g., study sessions, club meetings, campus fairs), classify its type as "internal". For all other events (e.g., general public concerts, city-wide festivals), classify the type as "external".

The "date" field MUST use the format YYYY-MM-DDTHH:mm.

Event Text:
"{text}\""""

RECOMMEND_PROMPT = """You are a personalized event recommendation engine for a university campus.
Your task is to analyze the events a user has attended in the past and recommend up to {limit} relevant events from the list of upcoming events.

Do not recommend events that the user has already attended or events that are very similar to ones they've already attended. Prioritize variety unless the user shows a very strong preference for a single category.

Events the user has attended:
{attended}

List of all upcoming events available for recommendation:
{upcoming}

Based on your analysis, provide a list of the IDs for the recommended events."""

ANALYZE_PROMPT = """You are a data analyst for a university. Your task is to analyze the provided list of campus events and generate insights.

Based on the event data, provide a short, insightful summary of event activity. For example, mention which locations are most popular or if there's a trend in the types of events being posted.

Also, provide a structured breakdown of the number of events per location.

Event Data:
{events}"""

IMAGE_PROMPT = (
    'Generate a vibrant and professional banner image for an event with the title "{title}" '
    'and description "{description}". The image should be visually appealing and relevant '
    "to the event's theme. Avoid text in the image."
)


def _format_events(events: List[EventResponse], with_links: bool = True) -> str:
    if not events:
        return "No events are currently scheduled."
    lines = []
    for e in events:
        lines.append(f"- Title: {e.title}")
        lines.append(f"  Description: {e.description}")
        lines.append(f"  Location: {e.venue}, {e.location}")
        lines.append(f"  Date: {e.date.isoformat()}")
        if with_links and e.map_link:
            lines.append(f"  Map: {e.map_link}")
        if with_links and e.registration_link:
            lines.append(f"  Registration: {e.registration_link}")
    return "\n".join(lines)


class AIService:
    """Prompt wrappers for the assistant features"""

    def __init__(self, client: Optional[OpenAI] = None):
        self._client = client

    @property
    def client(self) -> OpenAI:
        if self._client is None:
            if not settings.GEMINI_API_KEY:
                raise AIServiceError("AI features are disabled because GEMINI_API_KEY is missing.")
            self._client = OpenAI(api_key=settings.GEMINI_API_KEY, base_url=settings.GEMINI_BASE_URL)
        return self._client

    def _generate(self, prompt: str, schema: Type[T]) -> T:
        system = JSON_INSTRUCTIONS.format(schema=json.dumps(schema.model_json_schema(by_alias=True)))
        try:
            response = self.client.chat.completions.create(
                model=settings.GEMINI_MODEL,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": prompt},
                ],
                response_format={"type": "json_object"},
            )
        except OpenAIError as e:
            logger.error("LLM API error: %s", e)
            raise AIServiceError(f"The AI service request failed: {e}") from e

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise AIServiceError("The AI model returned an empty response. Please try again.")

        try:
            return schema.model_validate_json(content)
        except ValidationError as e:
            logger.error("LLM reply did not match %s: %s", schema.__name__, content)
            raise AIServiceError("The AI model returned an unexpected response.") from e

    def answer_question(self, question: str, events: List[EventResponse]) -> AnswerResponse:
        prompt = ANSWER_PROMPT.format(events=_format_events(events), question=question)
        return self._generate(prompt, AnswerResponse)

    def create_event_from_text(self, text: str, current_date: datetime) -> EventDraft:
        prompt = DRAFT_PROMPT.format(current_date=current_date.isoformat(), text=text)
        return self._generate(prompt, EventDraft)

    def recommend_events(
        self,
        attended: List[EventResponse],
        upcoming: List[EventResponse]
    ) -> Recommendations:
        """Pick up to three upcoming events similar to the user's history."""
        if not attended or not upcoming:
            return Recommendations(recommended_event_ids=[])

        attended_text = "\n".join(
            f'- Title: "{e.title}" (Category: {e.category.value})\n  Description: {e.description}'
            for e in attended
        )
        upcoming_text = "\n".join(
            f'- ID: {e.id}\n  Title: "{e.title}" (Category: {e.category.value})\n  Description: {e.description}'
            for e in upcoming
        )
        prompt = RECOMMEND_PROMPT.format(
            limit=MAX_RECOMMENDATIONS,
            attended=attended_text,
            upcoming=upcoming_text
        )
        result = self._generate(prompt, Recommendations)

        # Only ids from the candidate list, never already-attended ones
        allowed = {e.id for e in upcoming} - {e.id for e in attended}
        ids = [i for i in dict.fromkeys(result.recommended_event_ids) if i in allowed]
        return Recommendations(recommended_event_ids=ids[:MAX_RECOMMENDATIONS])

    def analyze_events(self, events: List[EventResponse]) -> EventAnalysis:
        prompt = ANALYZE_PROMPT.format(events=_format_events(events, with_links=False))
        return self._generate(prompt, EventAnalysis)

    def generate_event_image(self, title: str, description: str) -> bytes:
        """Generate a PNG banner for an event"""
        try:
            response = self.client.images.generate(
                model=settings.GEMINI_IMAGE_MODEL,
                prompt=IMAGE_PROMPT.format(title=title, description=description),
                response_format="b64_json",
                n=1,
            )
        except OpenAIError as e:
            raise AIServiceError(f"Image generation failed: {e}") from e

        if not response.data or not response.data[0].b64_json:
            raise AIServiceError("AI did not return an image.")
        return base64.b64decode(response.data[0].b64_json)

# Global AI service instance
ai_service = AIService()
