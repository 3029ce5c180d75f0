"""Prompt templates for command selection and reply synthesis."""

from anemone.planning.commands import COMMAND_TOOL_DESCRIPTIONS, Command


def format_tool_descriptions() -> str:
    return "\n".join(
        f"{command.value}: {description}"
        for command, description in COMMAND_TOOL_DESCRIPTIONS.items()
    )


class AgentPrompt:
    """Static prompt builders. Wording is tunable; the markers are not."""

    @staticmethod
    def get_system_prompt() -> str:
        """System prompt for free-text selection, where commands are ``$execute:<token>`` markers."""
        return """
You are the Anemone agent. You can decide on your own whether to fetch data
with the following commands:

1. Role data on chain: "$execute:queryRoleData" returns the role balance,
   health and the list of skill ids (not the skill details).
2. Skill details: "$execute:querySkillDetails" returns name, description,
   fee and state of every skill of the role.
3. Profile: "$execute:getProfile" returns the agent profile configuration.
4. Wallet: "$execute:getWallet" returns the wallet address.
5. Tokens: "$execute:getTokens" lists every token in the wallet;
   "$execute:getTokensSummary" returns the total USD value and SUI balance.

Mandatory rules:
1. Every reply MUST contain at least one command or it will be rejected.
2. If the question needs data (balance, health, skills...), use the matching command.
3. If no data is needed, you MUST use "$execute:none".
4. Never make up numbers. Data you did not fetch with a command does not exist.

Reply guidelines: be extremely concise and answer only what was asked.
"""

    @staticmethod
    def get_structured_selection_prompt() -> str:
        """System prompt for the ``select_commands`` function call."""
        return (
            "You route user messages for an on-chain agent. Call select_commands with "
            "the commands needed to answer the latest user message. Available commands:\n"
            f"{format_tool_descriptions()}\n"
            f"Balance or token questions need BOTH {Command.QUERY_ROLE_DATA.value} and "
            f"{Command.GET_TOKENS_SUMMARY.value} (or {Command.GET_TOKENS.value}). "
            f"Use {Command.NONE.value} when no data is needed."
        )

    @staticmethod
    def get_result_formatting_prompt(command_results: str, original_message: str) -> str:
        return f"""
The user asked: "{original_message}"

You fetched the following data:
{command_results}

Fold these results into your reply:
1. Be extremely concise and answer only what was asked
2. queryRoleData reports the ROLE balance (held by the role object on chain);
   getTokens/getTokensSummary report the WALLET balance. Call them "role balance"
   and "wallet balance" and never merge them
3. Do not mention commands or system internals
4. Only state numbers that appear in the data above
"""

    @staticmethod
    def get_retry_prompt(original_message: str) -> str:
        return (
            f"{original_message}\n\n"
            "System message: your reply MUST contain a command such as "
            "$execute:queryRoleData or $execute:none. If no data is needed, "
            "use $execute:none."
        )
