"""CLI interface for offline survival chat."""

import argparse
import asyncio
import logging
import sys
import time

from surviveai.core.cache_matcher import CacheMatcher
from surviveai.core.conversation_service import ConversationService
from surviveai.core.knowledge_retriever import KnowledgeRetriever
from surviveai.core.model_lifecycle import ModelHandle
from surviveai.core.orchestrator import ResponseOrchestrator
from surviveai.core.prompt_composer import PromptComposer
from surviveai.core.providers.ollama_provider import OllamaProvider
from surviveai.lib.config import ConfigLoader
from surviveai.lib.errors import ModelInUseError, ModelNotInitializedError, SurviveAIError
from surviveai.lib.logger import setup_logging
from surviveai.models.device_context import DeviceContext
from surviveai.storage.conversation_store import ConversationStore
from surviveai.storage.knowledge_store import load_default_corpus
from surviveai.tools.knowledge_lookup import KNOWLEDGE_TOOL_NAME, KnowledgeLookupTool

logger = logging.getLogger(__name__)

# How long close() waits for a timed-out generation to finish
RELEASE_DRAIN_SECONDS = 5.0

HELP_TEXT = """
Commands:
  /new            Start a new conversation
  /list           List conversations
  /open <id>      Switch to a conversation
  /rename <title> Rename the current conversation
  /clear          Clear messages in the current conversation
  /delete         Delete the current conversation
  /topics         Show knowledge topics
  /help           Show this help
  /quit           Exit
"""


class CLI:
    """Command-line interface for the survival assistant."""

    def __init__(self, debug: bool = False, context: DeviceContext | None = None):
        """Initialize CLI.

        Args:
            debug: Enable debug mode with verbose logging
            context: Device context attached to every turn
        """
        self.debug = debug
        self.context = context

        self.config = ConfigLoader()
        setup_logging(log_level="DEBUG" if debug else "INFO", quiet=not debug)

        self.corpus = load_default_corpus(self.config.get_env("knowledge_data_dir"))
        self.retriever = KnowledgeRetriever(self.corpus)
        self.cache_matcher = CacheMatcher(self.corpus)

        self.model_config = self.config.get_active_model()
        self.model_handle: ModelHandle | None = None
        self.conversation_service: ConversationService | None = None
        self.conversation_id: str | None = None

    def _build_tools(self) -> dict:
        tool_config = self.config.get_tool(KNOWLEDGE_TOOL_NAME)
        config = {"enabled": tool_config.enabled, **tool_config.config} if tool_config else {}
        return {KNOWLEDGE_TOOL_NAME: KnowledgeLookupTool(self.retriever, config)}

    async def load_model(self) -> None:
        """Connect to Ollama and load the active model, pulling it if missing."""
        engine = OllamaProvider(self.model_config, base_url=self.config.get_env("ollama_base_url"))
        self.model_handle = ModelHandle(engine)

        print(f"Loading {self.model_config.model_name}...", file=sys.stderr)
        try:
            await self.model_handle.initialize()
        except ModelNotInitializedError:
            print(f"Model not found locally, downloading {self.model_config.model_id}...", file=sys.stderr)
            await self.model_handle.acquire(on_progress=_print_progress)
            print(file=sys.stderr)
            await self.model_handle.initialize()

        orchestrator = ResponseOrchestrator(
            model_handle=self.model_handle,
            retriever=self.retriever,
            prompt_composer=PromptComposer(
                include_few_shot=self.config.get_env("include_few_shot"),
                supports_vision=self.model_config.supports_vision,
            ),
            tools=self._build_tools(),
            cache_matcher=self.cache_matcher,
            response_timeout=self.config.get_env("response_timeout"),
            max_tokens=self.config.get_env("model_max_tokens"),
            knowledge_search_limit=self.config.get_env("knowledge_search_limit"),
            use_cached_answers=self.config.get_env("use_cached_answers"),
        )
        store = ConversationStore(self.config.get_env("db_path"))
        self.conversation_service = ConversationService(store, orchestrator)
        print(f"✓ {self.model_config.model_name} ready", file=sys.stderr)

    async def close(self) -> None:
        """Release the model once in-flight generations drain."""
        if self.conversation_service:
            self.conversation_service.storage.close()
        if not self.model_handle:
            return

        deadline = time.monotonic() + RELEASE_DRAIN_SECONDS
        while self.model_handle.in_flight and time.monotonic() < deadline:
            await asyncio.sleep(0.05)
        try:
            await self.model_handle.release()
        except ModelInUseError as e:
            logger.warning(f"Skipping model release: {e}")

    # Knowledge commands (no model required)
    def show_topics(self) -> None:
        print("\nKnowledge topics:")
        for topic in self.corpus.topics:
            print(f"  {topic.id.value:<12} {topic.name} ({len(topic.entries)} entries)")
        print()

    def search(self, query: str) -> None:
        results = self.retriever.search_with_scores(
            query, self.config.get_env("knowledge_search_limit")
        )
        topics = self.retriever.detect_topics(query)
        if topics:
            print(f"Topics: {', '.join(topic.value for topic in topics)}")
        if not results:
            print("No matching knowledge entries.")
            return
        for scored in results:
            entry = scored.entry
            print(f"\n[{scored.score:.1f}] {entry.title} ({entry.id}, {entry.priority.value})")
            print(entry.content)

    def show_cached(self, query: str) -> None:
        matches = self.cache_matcher.find_top_matches(query)
        if not matches:
            print("No cached answer matches.")
            return
        for match in matches:
            confidence = "high" if match.score >= self.cache_matcher.high_confidence else "low"
            print(f"\n[{match.score}, {confidence}] {match.qa.question} ({match.qa.id})")
            print(f"  matched: {', '.join(match.matched_keywords)}")
        best = self.cache_matcher.find_cached_answer(query)
        if best:
            print(f"\n{best.answer}")

    # Chat
    async def ask(self, question: str) -> None:
        """Answer one question in a fresh conversation, streaming to stdout."""
        if self.conversation_id is None:
            self.conversation_id = self.conversation_service.create_conversation().id

        printed = ""

        def on_update(visible: str) -> None:
            nonlocal printed
            # Cleaning can rewrite earlier text; only print appended suffixes
            if visible.startswith(printed):
                sys.stdout.write(visible[len(printed):])
                sys.stdout.flush()
                printed = visible

        context = self.context.restamped() if self.context else None
        message = await self.conversation_service.send_message(
            self.conversation_id, question, context=context, on_update=on_update
        )
        if message.content.startswith(printed) and printed:
            sys.stdout.write(message.content[len(printed):])
        else:
            if printed:
                sys.stdout.write("\n")
            sys.stdout.write(message.content)

        source = "📚 knowledge-grounded" if message.source == "knowledge-grounded" else "🤖 model"
        footer = source
        if message.metrics and message.metrics.total_tokens:
            footer += f" | {message.metrics.tokens_per_second:.1f} tok/s"
        print(f"\n\n  {footer}\n")

    def _handle_command(self, line: str) -> bool:
        """Handle a slash command. Returns False when the user wants to quit."""
        command, _, arg = line.partition(" ")
        service = self.conversation_service

        if command in ("/quit", "/exit"):
            return False
        if command == "/help":
            print(HELP_TEXT)
        elif command == "/topics":
            self.show_topics()
        elif command == "/new":
            self.conversation_id = service.create_conversation().id
            print("Started a new conversation.")
        elif command == "/list":
            for conversation in service.list_conversations():
                marker = "*" if conversation.id == self.conversation_id else " "
                print(f" {marker} {conversation.id}  {conversation.title} ({conversation.message_count})")
        elif command == "/open" and arg:
            self.conversation_id = service.get_conversation(arg.strip()).id
            for message in service.get_messages(self.conversation_id):
                print(f"{message.role}> {message.content}\n")
        elif command == "/rename" and arg and self.conversation_id:
            service.rename_conversation(self.conversation_id, arg)
        elif command == "/clear" and self.conversation_id:
            service.clear_conversation(self.conversation_id)
            print("Conversation cleared.")
        elif command == "/delete" and self.conversation_id:
            service.delete_conversation(self.conversation_id)
            self.conversation_id = None
            print("Conversation deleted.")
        else:
            print("Unknown command. Try /help")
        return True

    async def chat_loop(self) -> None:
        print("SurviveAI offline survival assistant. Type /help for commands.\n")
        while True:
            try:
                line = (await asyncio.to_thread(input, "you> ")).strip()
            except (EOFError, KeyboardInterrupt):
                print()
                break

            if not line:
                continue
            try:
                if line.startswith("/"):
                    if not self._handle_command(line):
                        break
                    continue
                await self.ask(line)
            except SurviveAIError as e:
                logger.debug(f"Turn failed: {e}")
                print(f"\n❌ {e.user_message}\n")


def _print_progress(fraction: float) -> None:
    sys.stderr.write(f"\r  {fraction * 100:5.1f}%")
    sys.stderr.flush()


def build_context(args: argparse.Namespace) -> DeviceContext | None:
    provided = [args.lat, args.lon, args.elevation, args.battery, args.emergency]
    if all(value is None for value in provided) and not args.offline:
        return None
    return DeviceContext.capture(
        latitude=args.lat,
        longitude=args.lon,
        elevation_m=args.elevation,
        battery_percent=args.battery,
        is_offline=args.offline,
        emergency_mode=args.emergency,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="SurviveAI - offline survival assistant",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""Examples:
  surviveai                                   # Interactive chat
  surviveai --ask "How do I purify water?"    # Single question
  surviveai --search "snake bite"             # Search the knowledge base
  surviveai --cached "how to start a fire"    # Show cached answer matching
        """,
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug mode with verbose logging")

    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--ask", metavar="QUESTION", help="Answer a single question and exit")
    mode.add_argument("--search", metavar="QUERY", help="Search knowledge entries")
    mode.add_argument("--cached", metavar="QUERY", help="Show cached answer matches")
    mode.add_argument("--topics", action="store_true", help="List knowledge topics")

    context = parser.add_argument_group("device context")
    context.add_argument("--lat", type=float, help="Latitude in degrees")
    context.add_argument("--lon", type=float, help="Longitude in degrees")
    context.add_argument("--elevation", type=float, help="Elevation in meters")
    context.add_argument("--battery", type=int, help="Battery percent (0-100)")
    context.add_argument("--offline", action="store_true", help="Network unavailable")
    context.add_argument(
        "--emergency", choices=["lost", "injury", "wildlife", "other"], help="Active emergency"
    )
    return parser


async def main(args: argparse.Namespace) -> int:
    """Main entry point.

    Returns:
        Process exit code
    """
    try:
        cli = CLI(debug=args.debug, context=build_context(args))
    except SurviveAIError as e:
        print(f"❌ {e.user_message}", file=sys.stderr)
        return 1

    if args.topics:
        cli.show_topics()
        return 0
    if args.search:
        cli.search(args.search)
        return 0
    if args.cached:
        cli.show_cached(args.cached)
        return 0

    try:
        await cli.load_model()
        if args.ask:
            await cli.ask(args.ask)
        else:
            await cli.chat_loop()
    except SurviveAIError as e:
        logger.error(f"CLI error: {e}", exc_info=args.debug)
        print(f"\n❌ {e.user_message}", file=sys.stderr)
        return 1
    finally:
        await cli.close()
    return 0


def run() -> None:
    args = build_parser().parse_args()
    sys.exit(asyncio.run(main(args)))


if __name__ == "__main__":
    run()
