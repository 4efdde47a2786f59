"""
Schema-constrained prediction generation.

Builds the request (instructions template + context section, JSON-encoded
subject as the user message), calls the completion endpoint, validates the
structured response and reports usage to the ledger.

Every transport, parse or validation failure is logged and turned into None.
Callers treat None as "skip this subject, continue the batch".
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Iterable, Optional

from tipster.exceptions import LLMCancelledError, LLMError
from tipster.llm.openai_client import ChatCompletionResult, OpenAIClient
from tipster.llm.pricing import PricingTable, log_cost_breakdown
from tipster.llm.schemas import (
    BONUS_SCHEMA_NAME,
    MATCH_SCHEMA_NAME,
    build_bonus_schema,
    build_match_schema,
    parse_bonus_response,
    parse_match_response,
    response_format,
    to_bonus_prediction,
    validate_bonus_selection,
)
from tipster.llm.templates import InstructionsTemplateProvider
from tipster.llm.usage_ledger import UsageLedger
from tipster.models import BonusPrediction, BonusQuestion, DocumentContext, Match, Prediction
from tipster.telemetry.metrics import record_llm_request

logger = logging.getLogger(__name__)


def build_context_section(documents: Iterable[DocumentContext]) -> str:
    """Render documents as `---\\n<name>\\n\\n<content>\\n` blocks closed by `---`."""
    documents = list(documents)
    if not documents:
        return ""

    parts = ["\n"]
    for document in documents:
        parts.append(f"---\n{document.display_name}\n\n{document.content}\n")
    parts.append("---")
    return "".join(parts)


def build_match_payload(match: Match) -> str:
    return json.dumps(
        {
            "homeTeam": match.home_team,
            "awayTeam": match.away_team,
            "startsAt": match.starts_at.isoformat(),
        },
        ensure_ascii=False,
    )


def build_bonus_payload(question: BonusQuestion) -> str:
    return json.dumps(
        {
            "questionText": question.text,
            "options": [{"id": option.id, "text": option.text} for option in question.options],
            "maxSelections": question.max_selections,
        },
        ensure_ascii=False,
    )


class PredictionGenerator:
    """Generates match and bonus predictions for one model."""

    def __init__(
        self,
        client: OpenAIClient,
        ledger: UsageLedger,
        pricing: PricingTable,
        templates: InstructionsTemplateProvider,
        model: str,
    ):
        self.client = client
        self.ledger = ledger
        self.pricing = pricing
        self.templates = templates
        self.model = model

        # Missing templates are a configuration error: fail before any subject
        self.templates.load_match_template(model, include_justification=False)
        self.templates.load_bonus_template(model)

    def match_prompt_path(self, include_justification: bool = False) -> Path:
        return self.templates.match_template_path(self.model, include_justification)

    def bonus_prompt_path(self) -> Path:
        return self.templates.bonus_template_path(self.model)

    async def predict_match(
        self,
        match: Match,
        documents: Iterable[DocumentContext],
        include_justification: bool = False,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Optional[Prediction]:
        """Predict a scoreline. Returns None on any failure."""
        documents = list(documents)
        logger.info(
            f"[PREDICT] Match {match} with {self.model} "
            f"({len(documents)} documents, justification={include_justification})"
        )

        result = None
        try:
            template, _ = self.templates.load_match_template(self.model, include_justification)
            instructions = template + build_context_section(documents)
            schema = build_match_schema(include_justification)

            result = await self.client.complete(
                model=self.model,
                instructions=instructions,
                payload=build_match_payload(match),
                response_format=response_format(MATCH_SCHEMA_NAME, schema),
                cancel_event=cancel_event,
            )
            self._report_usage("match", result)

            prediction = parse_match_response(result.text, include_justification)
            logger.info(f"[PREDICT] {match}: {prediction}")
            return prediction

        except LLMCancelledError:
            logger.info(f"[PREDICT] Cancelled: {match}")
            record_llm_request(self.model, "match", "cancelled")
            return None
        except LLMError as e:
            logger.error(f"[PREDICT] Completion failed for {match}: {e} body={e.body[:500]}")
            record_llm_request(self.model, "match", "error")
            return None
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raw = result.text[:500] if result else ""
            logger.error(f"[PREDICT] Could not parse match prediction for {match}: {e}. Raw: {raw}")
            record_llm_request(self.model, "match", "invalid")
            return None

    async def predict_bonus_question(
        self,
        question: BonusQuestion,
        documents: Iterable[DocumentContext],
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Optional[BonusPrediction]:
        """Answer a bonus question with exactly max_selections options. None on failure."""
        documents = list(documents)
        logger.info(f"[PREDICT] Bonus question '{question.text}' with {self.model} ({len(documents)} documents)")

        result = None
        try:
            template, _ = self.templates.load_bonus_template(self.model)
            instructions = template + build_context_section(documents)
            schema = build_bonus_schema(question)

            result = await self.client.complete(
                model=self.model,
                instructions=instructions,
                payload=build_bonus_payload(question),
                response_format=response_format(BONUS_SCHEMA_NAME, schema),
                cancel_event=cancel_event,
            )
            self._report_usage("bonus", result)

            selected = parse_bonus_response(result.text)

        except LLMCancelledError:
            logger.info(f"[PREDICT] Cancelled: bonus question '{question.text}'")
            record_llm_request(self.model, "bonus", "cancelled")
            return None
        except LLMError as e:
            logger.error(f"[PREDICT] Completion failed for bonus question '{question.text}': {e} body={e.body[:500]}")
            record_llm_request(self.model, "bonus", "error")
            return None
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raw = result.text[:500] if result else ""
            logger.error(f"[PREDICT] Could not parse bonus prediction for '{question.text}': {e}. Raw: {raw}")
            record_llm_request(self.model, "bonus", "invalid")
            return None

        problems = validate_bonus_selection(question, selected)
        if problems:
            logger.warning(f"[PREDICT] Rejected bonus answer for '{question.text}': {'; '.join(problems)}")
            return None

        logger.info(f"[PREDICT] Bonus '{question.text}': {', '.join(selected)}")
        return to_bonus_prediction(question, selected)

    def _report_usage(self, kind: str, result: ChatCompletionResult) -> None:
        self.ledger.add_usage(self.model, result.usage)
        cost = log_cost_breakdown(self.pricing, self.model, result.usage)
        record_llm_request(
            self.model,
            kind,
            "ok",
            latency_ms=result.exec_ms,
            usage=result.usage,
            cost=cost,
        )
