"""Command-line interface for framesight.

Runs analysis sessions in-process, in batches, against a running
server, or starts that server.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

logger = logging.getLogger(__name__)

REMOTE_POLL_INTERVAL = 2.0


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="framesight",
        description="Answer questions about online videos with a vision model",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Path to YAML configuration file (default: config/framesight.yaml)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    analyze_parser = subparsers.add_parser("analyze", help="Analyze one video in-process")
    analyze_parser.add_argument("prompt", help="What to find out about the video")
    analyze_parser.add_argument("--url", default=None, help="Page hosting the video")
    analyze_parser.add_argument("--output", type=Path, default=None, help="Write the result as JSON")
    analyze_parser.add_argument("--timeout", type=float, default=None, help="Session deadline in seconds")

    batch_parser = subparsers.add_parser("batch", help="Analyze a YAML list of {prompt, url} requests")
    batch_parser.add_argument("file", type=Path, help="YAML file with the requests")
    batch_parser.add_argument("--output", type=Path, default=None, help="Write all results as JSON")

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP/WebSocket server")
    serve_parser.add_argument("--host", default=None, help="Override server.host")
    serve_parser.add_argument("--port", type=int, default=None, help="Override server.port")

    remote_parser = subparsers.add_parser("remote", help="Submit a request to a running server")
    remote_parser.add_argument("prompt", help="What to find out about the video")
    remote_parser.add_argument("--url", default=None, help="Page hosting the video")
    remote_parser.add_argument(
        "--server", default="http://localhost:3000",
        help="Base URL of the framesight server",
    )

    subparsers.add_parser("check", help="Check the inference provider is reachable")

    return parser.parse_args(argv)


def build_provider(settings):
    """Create the configured inference provider."""
    api_key, base_url = settings.inference_credentials()
    if not api_key:
        logger.warning("No API key configured for the %s provider", settings.inference.provider)

    kwargs = {
        "api_key": api_key,
        "model": settings.inference.model,
        "base_url": base_url,
        "timeout": settings.inference.timeout,
    }
    if settings.inference.provider == "anthropic":
        from framesight.inference.anthropic import AnthropicProvider
        return AnthropicProvider(**kwargs)

    from framesight.inference.openai import OpenAIProvider
    return OpenAIProvider(**kwargs)


def build_orchestrator(settings, provider=None):
    """Wire provider, cache, navigator, analyzer and synthesizer together.

    Returns:
        (orchestrator, cache) -- cache is None when disabled.
    """
    from framesight.analysis.synthesis import SynthesisEngine
    from framesight.inference.adapter import FrameAnalyzer
    from framesight.inference.cache import FrameCache
    from framesight.navigation.playwright import PlaywrightNavigator
    from framesight.session.orchestrator import SessionOrchestrator

    provider = provider or build_provider(settings)
    cache = None
    if settings.cache.enabled:
        cache = FrameCache(ttl_seconds=settings.cache.ttl_seconds, max_entries=settings.cache.max_entries)

    def navigator_factory() -> PlaywrightNavigator:
        return PlaywrightNavigator(
            provider,
            headless=settings.browser.headless,
            timeout=settings.browser.timeout,
            navigation_timeout=settings.browser.navigation_timeout,
            viewport=(settings.browser.viewport_width, settings.browser.viewport_height),
        )

    orchestrator = SessionOrchestrator(
        navigator_factory=navigator_factory,
        analyzer=FrameAnalyzer(
            provider,
            cache=cache,
            max_tokens=settings.inference.max_tokens,
            temperature=settings.inference.temperature,
        ),
        synthesizer=SynthesisEngine(
            provider,
            max_tokens=settings.inference.synthesis_max_tokens,
            temperature=settings.inference.synthesis_temperature,
        ),
        defaults=settings.analysis,
    )
    return orchestrator, cache


class _ConsoleSubscriber:
    """Prints session events as they arrive."""

    async def send(self, event) -> None:
        status = event.status.value if event.status else ""
        print(f"[{event.progress or 0:3d}%] {status:<17} {event.message}")


def _print_result(result) -> None:
    synthesized = result.synthesized
    print("\n" + "=" * 60)
    print(f"RESULT ({synthesized.synthesis_type.value}, {synthesized.frames_synthesized} frames)")
    print("=" * 60)
    print(synthesized.comprehensive_response)
    if synthesized.key_themes:
        print("\nKey themes:")
        for theme in synthesized.key_themes:
            print(f"  - {theme}")
    if synthesized.actionable_insights:
        print("\nActionable insights:")
        for insight in synthesized.actionable_insights:
            print(f"  - {insight}")
    if synthesized.executive_summary:
        print(f"\nSummary: {synthesized.executive_summary}")
    failed = [a for a in result.frame_analyses if not a.ok]
    if failed:
        print(f"\n{len(failed)} of {len(result.frame_analyses)} frame analyses failed")


async def _analyze(settings, args) -> int:
    from framesight.session.orchestrator import SessionFailed, SessionNotReady

    orchestrator, _ = build_orchestrator(settings)
    overrides = {"session_timeout": args.timeout} if args.timeout else None
    session_id = await orchestrator.start(args.prompt, args.url, overrides)
    orchestrator.broadcaster.subscribe(session_id, _ConsoleSubscriber())

    try:
        await orchestrator.wait(session_id)
    finally:
        await orchestrator.shutdown()

    try:
        result = orchestrator.get_result(session_id)
    except (SessionFailed, SessionNotReady) as e:
        print(f"\nAnalysis failed: {e}", file=sys.stderr)
        return 1

    _print_result(result)
    if args.output:
        args.output.write_text(result.model_dump_json(indent=2))
        print(f"\nResult written to {args.output}")
    return 0


async def _batch(settings, args) -> int:
    import yaml

    with open(args.file) as f:
        requests = yaml.safe_load(f) or []
    if not isinstance(requests, list):
        print(f"{args.file} must contain a list of {{prompt, url}} entries", file=sys.stderr)
        return 2

    orchestrator, _ = build_orchestrator(settings)
    session_ids = []
    for entry in requests:
        try:
            session_ids.append(await orchestrator.start(entry.get("prompt", ""), entry.get("url")))
        except (ValueError, AttributeError) as e:
            logger.warning("Skipping batch entry %r: %s", entry, e)

    try:
        await asyncio.gather(*(orchestrator.wait(sid) for sid in session_ids))
    finally:
        await orchestrator.shutdown()

    outcomes = []
    for sid in session_ids:
        session = orchestrator.get_status(sid)
        outcomes.append(
            {
                "session_id": sid,
                "prompt": session.prompt,
                "url": session.target_url,
                "status": session.status.value,
                "error": session.error.message if session.error else None,
                "result": session.result.model_dump(mode="json") if session.result else None,
            }
        )

    total = len(requests)
    successful = sum(1 for o in outcomes if o["status"] == "completed")
    print("\n" + "=" * 60)
    print("BATCH SUMMARY")
    print("=" * 60)
    print(f"Total:        {total}")
    print(f"Successful:   {successful}")
    print(f"Failed:       {total - successful}")
    print(f"Success rate: {successful / total * 100 if total else 0:.0f}%")
    for o in outcomes:
        marker = "OK  " if o["status"] == "completed" else "FAIL"
        print(f"  {marker} {o['prompt'][:60]}" + (f" ({o['error']})" if o["error"] else ""))

    if args.output:
        args.output.write_text(json.dumps(outcomes, indent=2))
        print(f"\nResults written to {args.output}")
    return 0 if successful == total else 1


async def _remote(args) -> int:
    import httpx

    base = args.server.rstrip("/")
    async with httpx.AsyncClient(base_url=base, timeout=30.0) as client:
        r = await client.post("/api/analyze", json={"prompt": args.prompt, "url": args.url})
        if r.status_code != 200:
            print(f"Server rejected request ({r.status_code}): {r.text}", file=sys.stderr)
            return 1
        session_id = r.json()["session_id"]
        print(f"Session {session_id} started")

        last_progress = -1
        while True:
            r = await client.get(f"/api/analyze/results/{session_id}")
            if r.status_code == 202:
                body = r.json()
                if body["progress"] != last_progress:
                    last_progress = body["progress"]
                    print(f"[{last_progress:3d}%] {body['status']}")
                await asyncio.sleep(REMOTE_POLL_INTERVAL)
                continue
            break

        if r.status_code != 200:
            print(f"Session ended ({r.status_code}): {r.text}", file=sys.stderr)
            return 1
        body = r.json()
        if body.get("status") == "failed":
            print(f"Analysis failed: {body.get('error')}", file=sys.stderr)
            return 1
        print(json.dumps(body["results"]["synthesized"], indent=2))
        return 0


async def _check(settings) -> int:
    provider = build_provider(settings)
    try:
        ok = await provider.health_check()
    finally:
        await provider.close()
    print(f"{provider.name} ({provider.model}): {'reachable' if ok else 'UNREACHABLE'}")
    return 0 if ok else 1


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the framesight CLI."""
    args = parse_args(argv)

    if args.command is None:
        parse_args(["--help"])
        return

    from framesight.config.settings import load_settings
    from framesight.utils.logging import setup_logging

    settings = load_settings(args.config)

    if args.verbose:
        settings.logging.level = "DEBUG"

    setup_logging(settings.logging)

    if args.command == "analyze":
        logger.info("Analyzing: %s", args.prompt)
        sys.exit(asyncio.run(_analyze(settings, args)))

    elif args.command == "batch":
        logger.info("Running batch from %s", args.file)
        sys.exit(asyncio.run(_batch(settings, args)))

    elif args.command == "serve":
        from framesight.endpoint.server import create_app
        import uvicorn

        orchestrator, cache = build_orchestrator(settings)
        app = create_app(orchestrator, cache=cache)
        host = args.host or settings.server.host
        port = args.port or settings.server.port
        logger.info("Starting server on %s:%d", host, port)
        uvicorn.run(app, host=host, port=port)

    elif args.command == "remote":
        sys.exit(asyncio.run(_remote(args)))

    elif args.command == "check":
        sys.exit(asyncio.run(_check(settings)))


if __name__ == "__main__":
    main()
