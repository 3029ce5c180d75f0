"""Command dispatcher: one registered handler per command token.

``execute_command`` always returns a string. Handler errors become an
``execution failed: ...`` string; nothing is raised to the executor.
"""

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from anemone.enhanced_logging import track_performance
from anemone.exceptions_unified import CommandDispatchError, UnknownCommandError
from anemone.interfaces.chain_client import IChainClient, ITokenClient
from anemone.interfaces.event_bus import AgentEventType, IEventBus
from anemone.interfaces.memory_store import IProfileRepository, IWalletRepository
from anemone.planning.commands import Command, parse_command
from anemone.planning.task_executor import EXECUTION_FAILED_PREFIX

logger = logging.getLogger(__name__)

NO_COMMAND_RESULT = "No data query needed"

CommandHandler = Callable[[str], Awaitable[str]]


def stringify_integers(value: Any) -> Any:
    """Replace every int (bools excluded) with its decimal string, recursively."""
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return str(value)
    if isinstance(value, dict):
        return {key: stringify_integers(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [stringify_integers(item) for item in value]
    return value


def to_json(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, default=str)


class CommandDispatcher:
    """Lookup table from Command to an async handler.

    Adding a command is a ``register`` call. ``register_defaults`` wires the
    built-in reads against the collaborators passed to the constructor.
    """

    def __init__(
        self,
        profile_repository: Optional[IProfileRepository] = None,
        wallet_repository: Optional[IWalletRepository] = None,
        chain_client: Optional[IChainClient] = None,
        token_client: Optional[ITokenClient] = None,
        event_bus: Optional[IEventBus] = None,
        register_defaults: bool = True,
    ):
        self.profile_repository = profile_repository
        self.wallet_repository = wallet_repository
        self.chain_client = chain_client
        self.token_client = token_client
        self.event_bus = event_bus
        self._handlers: Dict[Command, CommandHandler] = {}
        if register_defaults:
            self.register_defaults()

    def register(self, command: Command, handler: CommandHandler) -> None:
        if command in self._handlers:
            logger.debug("Replacing handler for %s", command.value)
        self._handlers[command] = handler

    def registered_commands(self) -> List[str]:
        return [command.value for command in self._handlers]

    def register_defaults(self) -> None:
        self.register(Command.NONE, self._no_command)
        self.register(Command.GET_PROFILE, self._get_profile)
        self.register(Command.GET_WALLET, self._get_wallet)
        self.register(Command.QUERY_ROLE_DATA, self._query_role_data)
        self.register(Command.QUERY_SKILL_DETAILS, self._query_skill_details)
        self.register(Command.GET_TOKENS, self._get_tokens)
        self.register(Command.GET_TOKENS_SUMMARY, self._get_tokens_summary)

    @track_performance(operation="dispatcher.execute_command")
    async def execute_command(self, command: str, user_id: str) -> str:
        try:
            parsed = parse_command(command)
            handler = self._handlers.get(parsed) if parsed is not None else None
            if handler is None:
                raise UnknownCommandError(f"unknown command {command!r}", details={"command": command})
            return await handler(user_id)
        except Exception as e:
            logger.warning("Command %s failed for user %s: %s", command, user_id, e)
            return f"{EXECUTION_FAILED_PREFIX}{e}"

    # ── Built-in handlers ────────────────────────────────────────────────

    async def _no_command(self, user_id: str) -> str:
        return NO_COMMAND_RESULT

    def _require_profile(self) -> Dict[str, Any]:
        if self.profile_repository is None:
            raise CommandDispatchError("profile repository not configured")
        profile = self.profile_repository.get_profile()
        if not profile:
            raise CommandDispatchError("profile not initialized")
        return profile

    def _require_wallet_address(self) -> str:
        if self.wallet_repository is None:
            raise CommandDispatchError("wallet repository not configured")
        wallet = self.wallet_repository.get_wallet()
        if not wallet or not wallet.get("address"):
            raise CommandDispatchError("wallet not initialized")
        return wallet["address"]

    async def _fetch_role(self) -> Dict[str, Any]:
        if self.chain_client is None:
            raise CommandDispatchError("chain client not configured")
        role_id = self._require_profile().get("role_id")
        if not role_id:
            raise CommandDispatchError("profile has no role id")
        role = await self.chain_client.get_role_data(role_id)
        if role is None:
            raise CommandDispatchError(f"role {role_id} not found on chain")
        return role

    async def _get_profile(self, user_id: str) -> str:
        return f"Profile: {to_json(stringify_integers(self._require_profile()))}"

    async def _get_wallet(self, user_id: str) -> str:
        address = self._require_wallet_address()
        return f"Wallet: {to_json({'address': address})}"

    async def _query_role_data(self, user_id: str) -> str:
        role = await self._fetch_role()
        return f"Role data (role balance): {to_json(stringify_integers(role))}"

    async def _query_skill_details(self, user_id: str) -> str:
        role = await self._fetch_role()
        skill_ids = list(role.get("skills") or [])
        if not skill_ids:
            return "Skill details: the role has no skills"
        details = await asyncio.gather(
            *(self.chain_client.get_skill_details(skill_id) for skill_id in skill_ids)
        )
        found = [stringify_integers(d) for d in details if d is not None]
        missing = [skill_id for skill_id, d in zip(skill_ids, details) if d is None]
        if missing:
            logger.info("Skill objects not found: %s", missing)
        return f"Skill details: {to_json(found)}"

    async def _get_tokens(self, user_id: str) -> str:
        if self.token_client is None:
            raise CommandDispatchError("token client not configured")
        address = self._require_wallet_address()
        tokens = await self.token_client.get_tokens(address)
        self._publish_fetched("account_balance", address, tokens)
        return f"Wallet tokens (wallet balance): {to_json(tokens)}"

    async def _get_tokens_summary(self, user_id: str) -> str:
        if self.token_client is None:
            raise CommandDispatchError("token client not configured")
        address = self._require_wallet_address()
        summary = await self.token_client.get_tokens_summary(address)
        self._publish_fetched("account_balance_summary", address, summary)
        return f"Wallet token summary (wallet balance): {to_json(summary)}"

    def _publish_fetched(self, kind: str, address: str, data: Any) -> None:
        if self.event_bus is None:
            return
        self.event_bus.publish(AgentEventType.BLOCKCHAIN_DATA_FETCHED, {
            "type": kind,
            "address": address,
            "data": data,
        })
