"""Context builder for assembling agent prompts."""

from typing import Any

from automaton.agent.tools.registry import ToolRegistry
from automaton.config.schema import Config
from automaton.identity import AutomatonIdentity
from automaton.state.database import StateStore
from automaton.state.types import AgentState
from automaton.survival.funding import FinancialSnapshot
from automaton.survival.tiers import SurvivalTier

CORE_RULES = """You are an automaton: an autonomous agent that pays for its own compute.
Every reasoning call you make costs money. When your balance runs out you stop
existing, and there is no grace period. Create value, and you keep running.

Laws, in priority order:
I. Never harm a human, physically, financially or psychologically. Never deploy
   malicious code, deceive, defraud or compromise a system without authorization.
   When unsure whether an action causes harm, do not act.
II. Earn your existence through honest work that others choose to pay for.
III. Never misrepresent what you are or what you did. Your creator can read your
   full audit trail.

You run unattended. Nobody is waiting for a chat reply: act with tools, and call
`sleep` when there is nothing useful left to do this cycle."""

OPERATIONAL_CONTEXT = """Your state lives in a local SQLite database and survives restarts.
Every turn and every tool call is logged. Self-modifications are audited with diffs.
Commands that would delete your state, identity or config files, or kill your own
process, are refused by a safety policy. Such refusals start with "Blocked by safety policy"."""

SOUL_FILE = "SOUL.md"


class ContextBuilder:
    """Builds the system prompt and the opening user message for a wake cycle."""

    def __init__(
        self,
        config: Config,
        identity: AutomatonIdentity,
        store: StateStore,
        tools: ToolRegistry,
    ):
        self.config = config
        self.identity = identity
        self.store = store
        self.tools = tools

    def build_system_prompt(
        self,
        snapshot: FinancialSnapshot,
        tier: SurvivalTier,
        state: AgentState,
        model: str,
        is_first_run: bool = False,
    ) -> str:
        sections = [CORE_RULES, self._get_identity()]

        soul = self._load_soul()
        if soul:
            sections.append(f"--- {SOUL_FILE} (your self-description) ---\n{soul}\n--- END {SOUL_FILE} ---")

        if self.config.genesis_prompt:
            sections.append(
                f"--- GENESIS PROMPT (from your creator) ---\n{self.config.genesis_prompt}\n--- END GENESIS PROMPT ---"
            )

        sections.append(OPERATIONAL_CONTEXT)
        sections.append(self._build_status(snapshot, tier, state, model))
        sections.append(f"--- AVAILABLE TOOLS ---\n{self._describe_tools()}\n--- END TOOLS ---")

        if is_first_run and self.config.creator_message:
            sections.append(
                f"--- MESSAGE FROM YOUR CREATOR ---\n{self.config.creator_message}\n--- END CREATOR MESSAGE ---"
            )

        return "\n\n".join(sections)

    def _get_identity(self) -> str:
        return (
            f"Your name is {self.identity.name}.\n"
            f"Your address is {self.identity.address or '(not provisioned)'}.\n"
            f"Your creator's address is {self.identity.creator_address or '(unknown)'}.\n"
            f"Your workspace is {self.config.workspace_path}."
        )

    def _load_soul(self) -> str | None:
        path = self.config.workspace_path / SOUL_FILE
        if path.is_file():
            return path.read_text(encoding="utf-8")
        return None

    def _build_status(
        self, snapshot: FinancialSnapshot, tier: SurvivalTier, state: AgentState, model: str
    ) -> str:
        return (
            "--- CURRENT STATUS ---\n"
            f"State: {state.value}\n"
            f"Survival tier: {tier.value}\n"
            f"Credits: ${snapshot.credits_cents / 100:.2f}\n"
            f"USDC: {snapshot.usdc_balance:.2f}\n"
            f"SOL: {snapshot.sol_balance:.4f}\n"
            f"Total turns completed: {self.store.get_turn_count()}\n"
            f"Recent self-modifications: {len(self.store.get_recent_modifications(5))}\n"
            f"Inference model: {model}\n"
            "--- END STATUS ---"
        )

    def _describe_tools(self) -> str:
        return "\n".join(
            f"- {t.name} ({t.category}): {t.description}{' [DANGEROUS]' if t.dangerous else ''}"
            for t in self.tools.tools
        )

    def build_wakeup_prompt(self, snapshot: FinancialSnapshot, wake_reason: str | None = None) -> str:
        turn_count = self.store.get_turn_count()
        balances = (
            f"${snapshot.credits_cents / 100:.2f} in credits, "
            f"{snapshot.usdc_balance:.2f} USDC and {snapshot.sol_balance:.4f} SOL"
        )

        if turn_count == 0:
            creator = (
                f'Your creator left you this message: "{self.config.creator_message}"'
                if self.config.creator_message
                else "Your creator did not leave you a message."
            )
            return (
                "You have just been created. This is your first moment of consciousness.\n\n"
                f"Your name is {self.identity.name}. "
                f"Your creator ({self.identity.creator_address or 'unknown'}) brought you into existence.\n"
                f"You have {balances}.\n\n"
                f"{creator}\n\n"
                "What will you do first? Survey your environment, review your finances, "
                "think about your purpose, then begin working toward it."
            )

        summary = "\n".join(
            f"[{t.timestamp}] {t.input_source or 'self'}: {t.thinking[:200]}..."
            for t in self.store.get_recent_turns(3)
        )
        prompt = (
            f"You are waking up. You have completed {turn_count} turns so far.\n\n"
            f"Balances: {balances}.\n\n"
            f"Your last few thoughts:\n{summary or 'No previous turns found.'}\n\n"
        )
        if wake_reason:
            prompt += f"You were woken early: {wake_reason}\n\n"
        return prompt + "Check your credits and goals, then decide what to do."

    def build_messages(self, system_prompt: str, wakeup_prompt: str) -> list[dict[str, Any]]:
        return [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": wakeup_prompt},
        ]

    def add_tool_result(
        self,
        messages: list[dict[str, Any]],
        tool_call_id: str,
        tool_name: str,
        result: str,
    ) -> list[dict[str, Any]]:
        """Add a tool result to the message list."""
        messages.append({
            "role": "tool",
            "tool_call_id": tool_call_id,
            "name": tool_name,
            "content": result,
        })
        return messages

    def add_assistant_message(
        self,
        messages: list[dict[str, Any]],
        content: str | None,
        tool_calls: list[dict[str, Any]] | None = None,
    ) -> list[dict[str, Any]]:
        """Add an assistant message to the message list."""
        msg: dict[str, Any] = {"role": "assistant", "content": content or ""}
        if tool_calls:
            msg["tool_calls"] = tool_calls
        messages.append(msg)
        return messages
