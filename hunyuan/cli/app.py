"""
Main CLI application for hunyuan-chat.

Usage:
    hunyuan chat PROMPT [--model NAME] [--system TEXT] [--stream/--no-stream]
    hunyuan tools list
    hunyuan config show
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from hunyuan.config import HunyuanConfig, load_config
from hunyuan.errors import HunyuanError
from hunyuan.llm.api import HunyuanApi
from hunyuan.llm.retry import RetryTemplate
from hunyuan.llm.signer import RequestSigner
from hunyuan.llm.types import ChatOptions, Conversation, Message
from hunyuan.orchestrator.core import ChatOrchestrator
from hunyuan.tools.registry import ToolRegistry

app = typer.Typer(name="hunyuan", help="Hunyuan chat-completion client")
tools_app = typer.Typer(help="Tool management")
config_app = typer.Typer(help="Configuration management")

app.add_typer(tools_app, name="tools")
app.add_typer(config_app, name="config")

console = Console()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _get_config_path() -> Path | None:
    """Find config file in standard locations."""
    candidates = [
        Path.cwd() / "hunyuan.yaml",
        Path.cwd() / "hunyuan.yml",
        Path.home() / ".config" / "hunyuan" / "config.yaml",
    ]
    for p in candidates:
        if p.is_file():
            return p
    return None


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def _build_registry(cfg: HunyuanConfig) -> ToolRegistry:
    registry = ToolRegistry(timeout=cfg.tools.timeout_seconds)
    registry.load_plugins(enabled=cfg.tools.plugins_enabled)
    return registry


def setup_stack(cfg: HunyuanConfig, registry: ToolRegistry | None = None) -> ChatOrchestrator:
    """Wire signer, HTTP client, retry and tools into an orchestrator."""
    signer = RequestSigner(
        cfg.credentials.secret_id,
        cfg.credentials.secret_key,
        version=cfg.api.version,
        region=cfg.api.region,
    )
    api = HunyuanApi(
        signer,
        base_url=cfg.api.base_url,
        host=cfg.api.host or None,
        service=cfg.api.service,
        action=cfg.api.action,
        timeout=cfg.api.timeout_seconds,
    )
    return ChatOrchestrator(
        api,
        registry=registry if registry is not None else _build_registry(cfg),
        default_options=cfg.default_options(),
        retry=RetryTemplate(cfg.retry_policy()),
        max_tool_rounds=cfg.chat.max_tool_rounds,
    )


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

@app.command()
def chat(
    prompt: str = typer.Argument(..., help="User message"),
    model: Optional[str] = typer.Option(None, help="Model id, e.g. hunyuan-pro"),
    system: Optional[str] = typer.Option(None, help="System prompt"),
    stream: bool = typer.Option(True, "--stream/--no-stream", help="Stream the answer"),
    profile: Optional[str] = typer.Option(None, help="Config profile name"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    """Send one message and print the answer."""
    from hunyuan.cli.output import OutputFormatter

    _setup_logging(verbose)
    formatter = OutputFormatter(console)

    messages = [Message.system(system)] if system else []
    messages.append(Message.user(prompt))
    conversation = Conversation(tuple(messages), ChatOptions(model=model))

    async def _run():
        orchestrator = setup_stack(load_config(_get_config_path(), profile=profile))
        try:
            if stream:
                final = []
                async for result in orchestrator.stream(conversation, on_complete=final.append):
                    formatter.format_delta(result)
                console.print()
                if final:
                    formatter.format_usage(final[0])
            else:
                result = await orchestrator.call(conversation)
                formatter.format_result(result)
                formatter.format_usage(result)
        finally:
            await orchestrator.api.aclose()

    try:
        asyncio.run(_run())
    except HunyuanError as e:
        formatter.format_error(e)
        raise typer.Exit(code=1)


@tools_app.command("list")
def tools_list(profile: Optional[str] = typer.Option(None, help="Config profile name")):
    """List tools available to the model."""
    from hunyuan.cli.output import OutputFormatter

    cfg = load_config(_get_config_path(), profile=profile)
    OutputFormatter(console).format_tool_list(_build_registry(cfg).list())


@config_app.command("show")
def config_show(profile: Optional[str] = typer.Option(None, help="Config profile name")):
    """Show the effective configuration (secret key redacted)."""
    from hunyuan.cli.output import OutputFormatter

    cfg = load_config(_get_config_path(), profile=profile)
    OutputFormatter(console).format_config(cfg.to_dict())


if __name__ == "__main__":
    app()
