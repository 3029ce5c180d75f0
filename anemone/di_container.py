"""Dependency injection container for the Anemone agent.

Lightweight wiring of services at application startup.
Uses lazy initialization: services are created on first access, and every
service shares the container's single event bus.
"""

import logging
from typing import Any, Dict, Optional

from anemone.config.settings import Settings, get_settings

logger = logging.getLogger(__name__)


class AgentContainer:
    """Service container owned by one application instance."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self.settings = settings or get_settings()
        self._event_bus = None
        self._database = None
        self._message_store = None
        self._profile_repository = None
        self._wallet_repository = None
        self._completion_provider = None
        self._chain_client = None
        self._token_client = None
        self._command_selector = None
        self._planner = None
        self._dispatcher = None
        self._executor = None
        self._synthesizer = None
        self._planning_service = None
        self._coordinator = None
        self._event_log = None
        self._started = False

    @property
    def event_bus(self):
        if self._event_bus is None:
            from anemone.event_bus import InMemoryEventBus
            self._event_bus = InMemoryEventBus(
                retention_seconds=self.settings.processing_retention_seconds
            )
        return self._event_bus

    @property
    def database(self):
        if self._database is None:
            from anemone.persistence import SQLiteDatabase
            self._database = SQLiteDatabase(self.settings.db_path)
        return self._database

    @property
    def message_store(self):
        if self._message_store is None:
            from anemone.persistence import SQLiteMessageStore
            self._message_store = SQLiteMessageStore(self.database)
        return self._message_store

    @property
    def profile_repository(self):
        if self._profile_repository is None:
            from anemone.persistence import SQLiteProfileRepository
            self._profile_repository = SQLiteProfileRepository(self.database)
        return self._profile_repository

    @property
    def wallet_repository(self):
        if self._wallet_repository is None:
            from anemone.persistence import SQLiteWalletRepository
            self._wallet_repository = SQLiteWalletRepository(self.database)
        return self._wallet_repository

    @property
    def completion_provider(self):
        if self._completion_provider is None:
            from anemone.llm import OpenAICompatibleProvider
            s = self.settings
            self._completion_provider = OpenAICompatibleProvider(
                api_key=s.openai_api_key,
                api_url=s.openai_api_url,
                model=s.openai_model,
                temperature=s.openai_temperature,
                max_tokens=s.openai_max_tokens,
                timeout=s.openai_timeout,
            )
        return self._completion_provider

    @property
    def chain_client(self):
        if self._chain_client is None:
            from anemone.chain import SuiChainClient
            self._chain_client = SuiChainClient(
                rpc_url=self.settings.sui_rpc_url, timeout=self.settings.chain_timeout
            )
        return self._chain_client

    @property
    def token_client(self):
        if self._token_client is None:
            from anemone.chain import BlockberryTokenClient
            self._token_client = BlockberryTokenClient(
                api_key=self.settings.blockberry_api_key,
                base_url=self.settings.blockberry_api_url,
                timeout=self.settings.chain_timeout,
            )
        return self._token_client

    @property
    def command_selector(self):
        if self._command_selector is None:
            from anemone.planning.command_selection import (
                KeywordCommandSelector,
                MarkerCommandSelector,
                StructuredCommandSelector,
            )
            from anemone.synthesis.retry_policy import ActionabilityRetryPolicy
            mode = self.settings.command_selection_mode
            if mode == "keyword":
                self._command_selector = KeywordCommandSelector()
            elif mode == "marker":
                self._command_selector = MarkerCommandSelector(
                    self.completion_provider,
                    retry_policy=ActionabilityRetryPolicy(
                        max_attempts=self.settings.actionability_max_attempts
                    ),
                )
            else:
                self._command_selector = StructuredCommandSelector(self.completion_provider)
            logger.info("Command selection mode: %s", mode)
        return self._command_selector

    @property
    def planner(self):
        if self._planner is None:
            from anemone.planning.task_planner import LLMTaskPlanner
            self._planner = LLMTaskPlanner(self.command_selector)
        return self._planner

    @property
    def dispatcher(self):
        if self._dispatcher is None:
            from anemone.dispatch import CommandDispatcher
            self._dispatcher = CommandDispatcher(
                profile_repository=self.profile_repository,
                wallet_repository=self.wallet_repository,
                chain_client=self.chain_client,
                token_client=self.token_client,
                event_bus=self.event_bus,
            )
        return self._dispatcher

    @property
    def executor(self):
        if self._executor is None:
            from anemone.planning.task_executor import TaskExecutor
            self._executor = TaskExecutor(self.dispatcher, self.event_bus)
        return self._executor

    @property
    def synthesizer(self):
        if self._synthesizer is None:
            from anemone.synthesis.response_synthesizer import ResponseSynthesizer
            self._synthesizer = ResponseSynthesizer(self.completion_provider)
        return self._synthesizer

    @property
    def planning_service(self):
        if self._planning_service is None:
            from anemone.orchestration import PlanningService
            self._planning_service = PlanningService(
                self.event_bus,
                self.planner,
                self.executor,
                self.synthesizer,
                message_store=self.message_store,
                history_rounds=self.settings.history_rounds,
            )
        return self._planning_service

    @property
    def coordinator(self):
        if self._coordinator is None:
            from anemone.orchestration import AgentCoordinator
            self._coordinator = AgentCoordinator(
                self.event_bus,
                self.message_store,
                self.profile_repository,
                self.wallet_repository,
                chain_client=self.chain_client,
                wait_timeout_ms=self.settings.chat_wait_timeout_ms,
            )
        return self._coordinator

    @property
    def event_log(self):
        if self._event_log is None:
            from anemone.observability import EventLogHandler
            self._event_log = EventLogHandler(
                path=self.settings.event_log_path,
                buffer_size=self.settings.event_log_buffer_size,
            )
        return self._event_log

    def start(self) -> None:
        """Subscribe the long-lived services to the bus."""
        if self._started:
            return
        self.event_log.attach(self.event_bus)
        self.coordinator.start()
        self.planning_service.start()
        if self.settings.wallet_address:
            self.wallet_repository.save_wallet_address(self.settings.wallet_address)
        self._started = True
        logger.info("Agent services started")

    async def shutdown(self) -> None:
        if not self._started:
            return
        self.planning_service.stop()
        self.coordinator.stop()
        await self.event_bus.drain()
        self.event_log.detach()
        self._started = False
        logger.info("Agent services stopped")

    def status(self) -> Dict[str, Any]:
        """Report which services are initialized."""
        return {
            "event_bus": self._event_bus is not None,
            "database": self._database is not None,
            "completion_provider": self._completion_provider is not None,
            "chain_client": self._chain_client is not None,
            "token_client": self._token_client is not None,
            "planner": self._planner is not None,
            "dispatcher": self._dispatcher is not None,
            "planning_service": self._planning_service is not None,
            "coordinator": self._coordinator is not None,
            "event_log": self._event_log is not None,
            "started": self._started,
        }
