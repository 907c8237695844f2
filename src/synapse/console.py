"""
console.py — Interactive conversation loop.

Reads lines with a prompt_toolkit session, routes plain text to the
active agent, and renders replies with Rich. Lines starting with ``/``
are commands (see HELP_TEXT).
"""

from __future__ import annotations

import logging
import threading

from prompt_toolkit import PromptSession
from prompt_toolkit.patch_stdout import patch_stdout
from rich.console import Console as RichConsole
from rich.markup import escape

from .nodes import Agent
from .router import Router

EXIT_WORDS = {"quit", "exit"}

HELP_TEXT = """\
/agents                              list registered nodes
/use <id>                            switch the active agent
/chain <id> <id> ... -- <text>       run text through a pipeline
/broadcast <id> <id> ... -- <text>   send text to several nodes
/history                             show the active agent's history
/reset                               clear the active agent's history
/debug                               toggle DEBUG logging
quit | exit                          leave"""


def user_input(text: str) -> dict:
    """Wrap terminal text as a request record."""
    return {"type": "user_input", "content": text}


def is_failure(record: dict) -> bool:
    """True for failure records and for the empty record of an unknown node."""
    return not record.get("success") and "content" not in record


def reply_text(record: dict) -> str:
    """Text carried by a non-failure record."""
    if record.get("success"):
        return record.get("generated_text", "")
    return record["content"]


def format_reply(label: str, record: dict) -> str:
    """Render a response record as one plain line."""
    if not is_failure(record):
        return f"{label}: {reply_text(record)}"
    status = record.get("http_status_code")
    suffix = f" (HTTP {status})" if status else ""
    return f"⚠️ {label} failed{suffix}: {record.get('error_message', 'no output')}"


def _split_targets(args: str) -> tuple[list[str], str] | None:
    """Split ``"a b -- text"`` into (["a", "b"], "text")."""
    if " -- " not in f" {args} ":
        return None
    ids_part, _, text = f" {args} ".partition(" -- ")
    ids = ids_part.split()
    text = text.strip()
    if not ids or not text:
        return None
    return ids, text


class Console:
    """Terminal front end over a Router.

    ``console`` and ``session`` default to a Rich console on stdout and
    a prompt_toolkit session created on first read.
    """

    def __init__(
        self,
        router: Router,
        agent_id: str,
        console: RichConsole | None = None,
        session: PromptSession | None = None,
    ):
        self.router = router
        self.agent_id = agent_id
        self.console = console or RichConsole()
        self._session = session
        self._print_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Public
    # ------------------------------------------------------------------

    def run(self) -> None:
        """Loop until the user quits or input ends."""
        self._print("\n[bold blue]Synapse[/bold blue]")
        self.info(
            f"Talking to '{self.agent_id}'. Type a message and press Enter. "
            "Type /help for commands, 'quit' or 'exit' to end."
        )
        while True:
            try:
                line = self.get_user_input()
            except (EOFError, KeyboardInterrupt):
                self.info("")
                break
            if not self.handle_line(line):
                break
        self.info("Ending conversation. Goodbye!")

    def handle_line(self, line: str) -> bool:
        """Process one line of input. Returns False when the user quits."""
        text = line.strip()
        if not text:
            return True
        if text.lower() in EXIT_WORDS:
            return False

        try:
            if text.startswith("/"):
                self._command(text)
            else:
                self._chat(text)
        except Exception as e:
            logging.exception("Error processing console input")
            self.error(f"⚠️ Synapse Error: {e}")
        return True

    def get_user_input(self) -> str:
        """Prompt the user for one line."""
        if self._session is None:
            self._session = PromptSession()
        with patch_stdout(raw=True):
            return self._session.prompt("You: ")

    def info(self, message: str) -> None:
        self._print(escape(message))

    def error(self, message: str) -> None:
        self._print(f"[bold red]{escape(message)}[/bold red]")

    def reply(self, label: str, record: dict) -> None:
        """Render one node's response record."""
        if is_failure(record):
            self.error(format_reply(label, record))
            return
        self._print(
            f"[bold yellow]{escape(label)}:[/bold yellow] {escape(str(reply_text(record)))}"
        )

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _print(self, message: str) -> None:
        with self._print_lock:
            self.console.print(message)

    def _label(self, node_id: str) -> str:
        node = self.router.get(node_id)
        return node.name if isinstance(node, Agent) else node_id

    def _chat(self, text: str) -> None:
        if self.agent_id not in self.router:
            self.error(f"⚠️ No agent '{self.agent_id}' registered. Use /agents and /use <id>.")
            return
        self.reply(self._label(self.agent_id), self.router.exchange(self.agent_id, user_input(text)))

    def _command(self, text: str) -> None:
        name, _, args = text[1:].partition(" ")
        args = args.strip()
        handlers = {
            "help": self._cmd_help,
            "agents": self._cmd_agents,
            "use": self._cmd_use,
            "chain": self._cmd_chain,
            "broadcast": self._cmd_broadcast,
            "history": self._cmd_history,
            "reset": self._cmd_reset,
            "debug": self._cmd_debug,
        }
        handler = handlers.get(name.lower())
        if handler is None:
            self.info(f"Unknown command '/{name}'. Type /help for commands.")
            return
        handler(args)

    def _cmd_help(self, args: str) -> None:
        self.info(HELP_TEXT)

    def _cmd_agents(self, args: str) -> None:
        for node_id in sorted(self.router.node_ids()):
            marker = "*" if node_id == self.agent_id else " "
            node = self.router.get(node_id)
            if isinstance(node, Agent):
                self._print(
                    f" {marker} [cyan]{escape(node_id)}[/cyan] {escape(node.name)} "
                    f"[magenta]({escape(node.params.model)})[/magenta]"
                )
            else:
                self._print(f" {marker} [dim]{escape(node_id)}[/dim]")

    def _cmd_use(self, args: str) -> None:
        if not args:
            self.info("Usage: /use <id>")
        elif not isinstance(self.router.get(args), Agent):
            self.error(f"⚠️ '{args}' is not a registered agent.")
        else:
            self.agent_id = args
            self.info(f"Now talking to '{args}'.")

    def _cmd_chain(self, args: str) -> None:
        parsed = _split_targets(args)
        if parsed is None:
            self.info("Usage: /chain <id> <id> ... -- <text>")
            return
        ids, message = parsed
        if self.router.send_data_stream(ids, user_input(message)):
            self.reply(self._label(ids[-1]), self.router.fetch(ids[-1]))
        else:
            self.error("⚠️ Pipeline stopped early.")

    def _cmd_broadcast(self, args: str) -> None:
        parsed = _split_targets(args)
        if parsed is None:
            self.info("Usage: /broadcast <id> <id> ... -- <text>")
            return
        ids, message = parsed
        ok = self.router.send_data_multi(ids, user_input(message))
        for node_id in ids:
            if node_id in self.router:
                self.reply(self._label(node_id), self.router.fetch(node_id))
            else:
                self.error(f"⚠️ {node_id}: not registered")
        if not ok:
            self.error("⚠️ Some recipients failed.")

    def _cmd_history(self, args: str) -> None:
        agent = self.router.get(self.agent_id)
        if not isinstance(agent, Agent):
            self.error(f"⚠️ No agent '{self.agent_id}' registered.")
            return
        history = agent.history
        if not history:
            self._print("[dim](empty)[/dim]")
            return
        for turn in history:
            if turn["role"] == "user":
                self._print(f"[bold cyan]User:[/bold cyan] {escape(turn['text'])}")
            else:
                self._print(f"[bold yellow]{escape(agent.name)}:[/bold yellow] {escape(turn['text'])}")

    def _cmd_reset(self, args: str) -> None:
        agent = self.router.get(self.agent_id)
        if isinstance(agent, Agent):
            agent.reset()
            self.info(f"History for '{self.agent_id}' cleared.")

    def _cmd_debug(self, args: str) -> None:
        root = logging.getLogger()
        enabled = root.getEffectiveLevel() > logging.DEBUG
        root.setLevel(logging.DEBUG if enabled else logging.INFO)
        self._print(f"[dim]Debugging {'enabled' if enabled else 'disabled'}.[/dim]")
