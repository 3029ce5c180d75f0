"""Command vocabulary shared by the planner, the selectors and the dispatcher.

A command is nothing more than its token. The dispatcher is the single place
that maps a token to the read it performs.
"""

from enum import Enum
from typing import Dict, Iterable, List, Optional


class Command(str, Enum):
    QUERY_ROLE_DATA = "queryRoleData"
    QUERY_SKILL_DETAILS = "querySkillDetails"
    GET_PROFILE = "getProfile"
    GET_WALLET = "getWallet"
    GET_TOKENS = "getTokens"
    GET_TOKENS_SUMMARY = "getTokensSummary"
    NONE = "none"


COMMAND_TOKENS: List[str] = [command.value for command in Command]

# Short noun phrases used in task descriptions ("Fetch <description>").
COMMAND_DESCRIPTIONS: Dict[Command, str] = {
    Command.GET_WALLET: "wallet information",
    Command.QUERY_ROLE_DATA: "role data",
    Command.GET_TOKENS: "detailed token list",
    Command.GET_TOKENS_SUMMARY: "token balance summary",
    Command.QUERY_SKILL_DETAILS: "skill details",
    Command.GET_PROFILE: "profile configuration",
    Command.NONE: "nothing (no data needed)",
}

# Guidance shown to the model when it selects commands.
COMMAND_TOOL_DESCRIPTIONS: Dict[Command, str] = {
    Command.GET_WALLET: (
        "Retrieves wallet address and information. Use when the user asks about "
        "the wallet address or general wallet information."
    ),
    Command.QUERY_ROLE_DATA: (
        "Queries the role object on chain: health, balance and the list of skill ids. "
        "Use when the user asks about role status, health or role balance."
    ),
    Command.GET_TOKENS: (
        "Lists every token held by the wallet with amounts and USD values. "
        "Use for detailed token information or a specific token balance."
    ),
    Command.GET_TOKENS_SUMMARY: (
        "Summarises wallet tokens: total USD value and SUI balance. "
        "Use for total or general balance questions."
    ),
    Command.QUERY_SKILL_DETAILS: (
        "Gets name, description, fee and state of every skill the role has. "
        "Use when the user asks about skills or capabilities."
    ),
    Command.GET_PROFILE: (
        "Gets the agent profile configuration (role id and package id)."
    ),
    Command.NONE: (
        "Fetch nothing. Use for greetings, small talk or questions that need no data."
    ),
}

BALANCE_KEYWORDS = ("余额", "balance", "token", "代币")

_BY_LOWER_TOKEN: Dict[str, Command] = {command.value.lower(): command for command in Command}


def parse_command(token: str) -> Optional[Command]:
    """Map a raw token to a Command; matching ignores case. Unknown tokens give None."""
    if not token:
        return None
    return _BY_LOWER_TOKEN.get(token.strip().lower())


def describe_command(command: str) -> str:
    parsed = parse_command(command)
    if parsed is None:
        return command
    return COMMAND_DESCRIPTIONS[parsed]


def is_balance_query(message: str) -> bool:
    lowered = (message or "").lower()
    return any(keyword in lowered for keyword in BALANCE_KEYWORDS)


def enforce_balance_rule(message: str, commands: Iterable[str]) -> List[str]:
    """Balance questions need both the role balance and a wallet token read.

    Missing halves are appended (``queryRoleData`` first, then
    ``getTokensSummary``). A lone ``none`` is replaced, since the message
    evidently needs data.
    """
    result = list(commands)
    if not is_balance_query(message):
        return result

    if result and all(c == Command.NONE.value for c in result):
        result = []
    if Command.QUERY_ROLE_DATA.value not in result:
        result.append(Command.QUERY_ROLE_DATA.value)
    if Command.GET_TOKENS.value not in result and Command.GET_TOKENS_SUMMARY.value not in result:
        result.append(Command.GET_TOKENS_SUMMARY.value)
    return result
