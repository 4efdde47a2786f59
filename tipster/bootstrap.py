"""Builds a ready-to-run prediction workflow from settings."""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine

from tipster.config import Settings, get_settings, require_llm_settings
from tipster.context.assembler import ContextAssembler
from tipster.context.provider import ContextProvider
from tipster.llm.openai_client import OpenAIClient
from tipster.llm.prediction_generator import PredictionGenerator
from tipster.llm.pricing import PricingTable
from tipster.llm.templates import InstructionsTemplateProvider
from tipster.llm.usage_ledger import UsageLedger
from tipster.logging_config import setup_logging
from tipster.prediction.sequencer import PredictionPolicy, RepredictionSequencer
from tipster.prediction.staleness import StalenessEvaluator
from tipster.prediction.workflow import PredictionWorkflow
from tipster.stores.sql import (
    SqlDocumentStore,
    SqlPredictionStore,
    create_engine,
    create_session_maker,
    init_db,
)

logger = logging.getLogger(__name__)


@dataclass
class Runtime:
    """Everything a run needs, plus the resources to release afterwards."""

    settings: Settings
    workflow: PredictionWorkflow
    ledger: UsageLedger
    document_store: SqlDocumentStore
    prediction_store: SqlPredictionStore
    client: OpenAIClient
    engine: AsyncEngine

    async def close(self) -> None:
        await self.client.close()
        await self.engine.dispose()


def policy_from_settings(
    settings: Settings,
    repredict: bool = False,
    override_existing: bool = False,
) -> PredictionPolicy:
    policy = PredictionPolicy(
        repredict=repredict,
        max_repredictions=settings.MAX_REPREDICTIONS,
        override_existing=override_existing,
    )
    policy.validate()
    return policy


async def create_runtime(
    settings: Optional[Settings] = None,
    live_provider: Optional[ContextProvider] = None,
    dry_run: bool = False,
) -> Runtime:
    """
    Validate configuration and wire the pipeline.

    Raises:
        ConfigurationError: missing API key or model, negative reprediction cap.
        FileNotFoundError: no instruction templates for the configured model.
    """
    settings = settings or get_settings()
    setup_logging(settings.LOG_LEVEL)
    require_llm_settings(settings)

    community = settings.community_context
    model = settings.PREDICTION_MODEL

    engine = create_engine(settings.DATABASE_URL)
    await init_db(engine)
    session_maker = create_session_maker(engine)
    document_store = SqlDocumentStore(session_maker)
    prediction_store = SqlPredictionStore(session_maker)

    pricing = PricingTable.from_settings(settings)
    ledger = UsageLedger(pricing)
    client = OpenAIClient(settings)

    try:
        generator = PredictionGenerator(
            client=client,
            ledger=ledger,
            pricing=pricing,
            templates=InstructionsTemplateProvider(settings.PROMPTS_DIR),
            model=model,
        )
    except FileNotFoundError:
        await client.close()
        await engine.dispose()
        raise

    staleness = StalenessEvaluator(document_store, ignored_documents=settings.STALENESS_IGNORED_DOCUMENTS)
    workflow = PredictionWorkflow(
        assembler=ContextAssembler(document_store, live_provider),
        sequencer=RepredictionSequencer(prediction_store, staleness),
        generator=generator,
        ledger=ledger,
        community=community,
        dry_run=dry_run,
    )

    logger.info(
        f"Runtime ready: model={model} community={community} "
        f"prompt={generator.match_prompt_path()} dry_run={dry_run}"
    )
    return Runtime(
        settings=settings,
        workflow=workflow,
        ledger=ledger,
        document_store=document_store,
        prediction_store=prediction_store,
        client=client,
        engine=engine,
    )
