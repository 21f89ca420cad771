"""
Command-line interface for the Polly NPC dialogue server.

Provides CLI commands for running and exercising the server:
- run: Start the HTTP API (uvicorn)
- generate: Produce one NPC line and print it
- check: List the out-of-vocabulary words of a text for a language/level

Usage:
    polly-server run [--port PORT] [--host HOST]
    polly-server generate --persona "Marta, baker" --topic "pan" --user "Hola"
    polly-server check "Quiero pan con chocolate" --lang-code es --level 1

Environment Variables:
    POLLY_HOST: Host to bind the API server (default: 0.0.0.0)
    POLLY_PORT: Port for the API server (default: 8000)
    GROQ_API_KEY: Bearer token for the LLM endpoint
"""

import argparse
import asyncio
import json
import sys

from polly_server.generation.compliance import check_compliance
from polly_server.generation.service import (
    DEFAULT_LANG_CODE,
    DEFAULT_LANGUAGE,
    DEFAULT_LEVEL,
    DEFAULT_PERSONA,
    DEFAULT_UTTERANCE,
)


def cmd_run(args: argparse.Namespace) -> int:
    """
    Run the API server in the foreground.

    Args:
        args: Parsed arguments; ``host`` and ``port`` override the config.

    Returns:
        0 on clean shutdown (Ctrl+C), 1 on startup error.
    """
    from polly_server.api.server import start_server

    try:
        start_server(host=getattr(args, "host", None), port=getattr(args, "port", None))
        return 0
    except KeyboardInterrupt:
        print("\nServer stopped.")
        return 0
    except Exception as e:
        print(f"Error starting server: {e}", file=sys.stderr)
        return 1


def cmd_generate(args: argparse.Namespace) -> int:
    """Generate one line and print it (or the full result as JSON)."""
    from polly_server.config import load_config
    from polly_server.generation import (
        DialogueRequest,
        FetchError,
        GenerationError,
        NPCDialogueService,
    )

    cfg = load_config()
    service = NPCDialogueService(cfg.generation)
    request = DialogueRequest(
        persona=args.persona,
        language=args.language,
        lang_code=args.lang_code,
        level=args.level,
        topic=args.topic,
        utterance=args.user,
    )

    try:
        result = asyncio.run(service.generate(request, policy=args.policy))
    except (FetchError, GenerationError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.json:
        payload = {
            "text": result.text,
            "outcome": result.outcome.value,
            "name": result.name,
            "attempts": [
                {"text": a.text, "oov": list(a.oov), "tokens": a.token_count}
                for a in result.attempts
            ],
        }
        print(json.dumps(payload, ensure_ascii=False, indent=2))
    else:
        print(result.text)
    return 0


def cmd_check(args: argparse.Namespace) -> int:
    """
    Check a text against a bank.

    Returns:
        0 when every word is in the bank, 2 when some are not, 1 on fetch error.
    """
    from polly_server.config import load_config
    from polly_server.generation import FetchError, NPCDialogueService

    cfg = load_config()
    service = NPCDialogueService(cfg.generation, api_key="")

    try:
        bank = asyncio.run(service.load_bank(args.lang_code, args.level))
    except FetchError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    oov = check_compliance(args.text, bank)
    print(f"Bank {bank.lang}_{bank.tier}: {len(bank)} words")
    if not oov:
        print("All words are in the bank.")
        return 0
    print("Out of vocabulary: " + ", ".join(oov))
    return 2


def main() -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        prog="polly-server",
        description="Polly - vocabulary-constrained NPC dialogue server",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # run command
    run_parser = subparsers.add_parser(
        "run",
        help="Run the API server",
        description="Start the FastAPI server with uvicorn.",
    )
    run_parser.add_argument(
        "--port",
        "-p",
        type=int,
        help="API server port (default: 8000, or POLLY_PORT env var)",
    )
    run_parser.add_argument(
        "--host",
        type=str,
        help="Host to bind to (default: 0.0.0.0, or POLLY_HOST env var)",
    )
    run_parser.set_defaults(func=cmd_run)

    # generate command
    gen_parser = subparsers.add_parser(
        "generate",
        help="Generate one NPC line",
        description="Run the full generation pipeline once and print the result.",
    )
    gen_parser.add_argument("--persona", default=DEFAULT_PERSONA)
    gen_parser.add_argument("--language", default=DEFAULT_LANGUAGE)
    gen_parser.add_argument("--lang-code", default=DEFAULT_LANG_CODE)
    gen_parser.add_argument("--level", default=DEFAULT_LEVEL)
    gen_parser.add_argument("--topic", default="")
    gen_parser.add_argument("--user", default=DEFAULT_UTTERANCE)
    gen_parser.add_argument(
        "--policy",
        choices=["strict", "tolerant"],
        help="Override the configured retry policy",
    )
    gen_parser.add_argument(
        "--json",
        action="store_true",
        help="Print outcome and attempts as JSON",
    )
    gen_parser.set_defaults(func=cmd_generate)

    # check command
    check_parser = subparsers.add_parser(
        "check",
        help="List out-of-vocabulary words in a text",
        description="Load the bank for a language/level and report words outside it.",
    )
    check_parser.add_argument("text", help="Text to check")
    check_parser.add_argument("--lang-code", default=DEFAULT_LANG_CODE)
    check_parser.add_argument("--level", default=DEFAULT_LEVEL)
    check_parser.set_defaults(func=cmd_check)

    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        return 0

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
