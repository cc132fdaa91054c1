"""
Main CLI entry point for flarecore.

Provides the command-line interface using Click.
"""

import asyncio as _asyncio
import contextlib as _contextlib
import json as _json
import logging as _logging
import signal as _signal
import sys as _sys
import typing as _typing

import click as _click
import rich.console as _rich_console
import rich.logging as _rich_logging

import flarecore
import flarecore.api as api
import flarecore.api.providers.base as providers_base
import flarecore.config as config
import flarecore.config.sources as config_sources

# Custom Click context settings for better help formatting
CONTEXT_SETTINGS: dict[str, _typing.Any] = {
    "help_option_names": ["-h", "--help"],
    "max_content_width": 100,
}


def _run_async(coro: _typing.Coroutine[_typing.Any, _typing.Any, _typing.Any]) -> _typing.Any:
    """Run an async coroutine synchronously."""
    return _asyncio.run(coro)


def _configure_logging(level: str) -> None:
    """Route flarecore's loggers to stderr through rich."""
    handler = _rich_logging.RichHandler(
        console=_rich_console.Console(stderr=True),
        show_path=False,
        markup=False,
    )
    handler.setFormatter(_logging.Formatter("%(name)s: %(message)s"))
    logger = _logging.getLogger("flarecore")
    logger.handlers[:] = [handler]
    logger.setLevel(level.upper())


def _create_client(settings: config.Settings, provider: str | None) -> providers_base.ProviderClient:
    """Create the client for `provider` (or the configured default)."""
    return api.create_client_from_settings(provider, settings)


def _fail(message: str, *, json_output: bool) -> _typing.NoReturn:
    if json_output:
        _click.echo(_json.dumps({"error": message}, indent=2))
        raise SystemExit(1)
    raise _click.ClickException(message)


@_click.group(context_settings=CONTEXT_SETTINGS)
@_click.version_option(flarecore.__version__, "-v", "--version", prog_name="flarecore")
@_click.option(
    "--log-level",
    type=_click.Choice(["debug", "info", "warning", "error"]),
    default=None,
    help="Log level (default: logging.level from config)",
)
@_click.pass_context
def cli(ctx: _click.Context, log_level: str | None) -> None:
    """
    flarecore - streaming chat client for OpenAI, Anthropic, Gemini, Ollama and OpenRouter.

    \b
    Examples:
        flarecore chat "explain this code"          # Stream a reply
        flarecore chat --provider anthropic "hi"    # Use a specific provider
        echo "prompt" | flarecore chat              # Pipe input
        flarecore models --provider ollama          # List models
        flarecore config show                       # Show configuration
    """
    try:
        settings = config.Settings()
    except config.ConfigFileError as e:
        raise _click.ClickException(str(e)) from None

    _configure_logging(log_level or settings.logging.level)

    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings


# =============================================================================
# chat
# =============================================================================


async def _run_chat(
    settings: config.Settings,
    prompt: str,
    *,
    provider: str | None,
    system: str | None,
    show_reasoning: bool,
    json_output: bool,
    overrides: dict[str, _typing.Any],
) -> api.CompletionResult:
    token = api.CancellationToken()

    def on_token(event: api.TokenEvent) -> None:
        if json_output:
            return
        if event.kind == "answer":
            _click.echo(event.text, nl=False)
        elif show_reasoning:
            _click.echo(_click.style(event.text, dim=True), nl=False)

    history = [api.Message.system(system)] if system else []
    request = api.build_request(
        prompt,
        history,
        settings,
        cancellation=token,
        on_token=on_token,
        **overrides,
    )

    loop = _asyncio.get_running_loop()
    # Ctrl-C cancels the request; the partial reply is still printed.
    with _contextlib.suppress(NotImplementedError, RuntimeError):
        loop.add_signal_handler(_signal.SIGINT, token.cancel, "interrupted")
    try:
        async with _create_client(settings, provider) as client:
            return await client.send_message(request)
    finally:
        with _contextlib.suppress(NotImplementedError, RuntimeError):
            loop.remove_signal_handler(_signal.SIGINT)


@cli.command()
@_click.option("--provider", type=str, default=None, help="Provider instance to use")
@_click.option("--model", type=str, default=None, help="Model to use")
@_click.option("--temperature", type=float, default=None, help="Sampling temperature")
@_click.option("--max-tokens", type=int, default=None, help="Maximum tokens to generate")
@_click.option("--system", type=str, default=None, help="System prompt")
@_click.option(
    "--context-window",
    type=int,
    default=None,
    help="Recent turns to send (-1 for all)",
)
@_click.option("--no-stream", is_flag=True, help="Disable streaming (get complete response)")
@_click.option("--show-reasoning", is_flag=True, help="Print reasoning blocks (dimmed)")
@_click.option("--no-reasoning", is_flag=True, help="Treat all output as answer text")
@_click.option("--json", "json_output", is_flag=True, help="JSON output")
@_click.argument("prompt", required=False, nargs=-1)
@_click.pass_context
def chat(
    ctx: _click.Context,
    provider: str | None,
    model: str | None,
    temperature: float | None,
    max_tokens: int | None,
    system: str | None,
    context_window: int | None,
    no_stream: bool,
    show_reasoning: bool,
    no_reasoning: bool,
    json_output: bool,
    prompt: tuple[str, ...],
) -> None:
    """Send a prompt and stream the reply."""
    settings: config.Settings = ctx.obj["settings"]

    # Collect prompt sources: stdin (if piped), then ARGV
    prompt_parts: list[str] = []
    if not _sys.stdin.isatty():
        stdin_content = _sys.stdin.read().strip()
        if stdin_content:
            prompt_parts.append(stdin_content)
    if prompt and " ".join(prompt).strip():
        prompt_parts.append(" ".join(prompt))

    prompt_text = "\n\n".join(prompt_parts)
    if not prompt_text:
        _fail('No prompt provided. Usage: flarecore chat "your prompt"', json_output=json_output)

    overrides: dict[str, _typing.Any] = {
        "model": model,
        "temperature": temperature,
        "max_tokens": max_tokens,
        "context_window": context_window,
    }
    if no_stream:
        overrides["stream"] = False
    if no_reasoning:
        overrides["reasoning"] = False

    try:
        result: api.CompletionResult = _run_async(
            _run_chat(
                settings,
                prompt_text,
                provider=provider,
                system=system,
                show_reasoning=show_reasoning,
                json_output=json_output,
                overrides=overrides,
            )
        )
    except api.FlareError as e:
        _fail(f"{type(e).__name__}: {e}", json_output=json_output)

    if json_output:
        _click.echo(
            _json.dumps(
                {
                    "state": result.state.value,
                    "content": result.text,
                    "reasoning_blocks": list(result.reasoning_blocks),
                    "truncated": result.truncated,
                    "context": result.context,
                    "error": str(result.error) if result.error else None,
                },
                indent=2,
            )
        )
    else:
        _click.echo()
        if result.state is api.RequestState.ABORTED:
            _click.echo("[cancelled]", err=True)
        elif result.error is not None:
            _click.echo(f"[stream failed: {result.error}]", err=True)

    if result.state is api.RequestState.FAILED:
        raise SystemExit(1)


# =============================================================================
# models / providers
# =============================================================================


async def _list_models(settings: config.Settings, provider: str | None, show_all: bool) -> list[str]:
    async with _create_client(settings, provider) as client:
        if show_all:
            return await client.list_models()
        return await client.visible_models()


@cli.command(name="models")
@_click.option("--provider", type=str, default=None, help="Provider instance to query")
@_click.option("--all", "show_all", is_flag=True, help="Ignore visible_models and list everything")
@_click.option("--json", "json_output", is_flag=True, help="JSON output")
@_click.pass_context
def models_cmd(ctx: _click.Context, provider: str | None, show_all: bool, json_output: bool) -> None:
    """List the models a provider offers."""
    settings: config.Settings = ctx.obj["settings"]
    try:
        models: list[str] = _run_async(_list_models(settings, provider, show_all))
    except api.FlareError as e:
        _fail(f"{type(e).__name__}: {e}", json_output=json_output)

    if json_output:
        _click.echo(_json.dumps(models, indent=2))
        return
    for model_id in models:
        _click.echo(model_id)
    _click.echo(f"\nTotal: {len(models)} models")


@cli.command(name="providers")
@_click.option("--json", "json_output", is_flag=True, help="JSON output")
@_click.pass_context
def providers_cmd(ctx: _click.Context, json_output: bool) -> None:
    """List providers and their credential status."""
    settings: config.Settings = ctx.obj["settings"]
    providers = api.get_available_providers(settings)

    if json_output:
        _click.echo(_json.dumps(providers, indent=2))
        return

    _click.echo("Available Providers:")
    for p in providers:
        status = "✓" if p["key_configured"] else "✗"
        default = " (default)" if p["default"] else ""
        disabled = "" if p["enabled"] else " (disabled)"
        _click.echo(f"  {status} {p['name']} [{p['type']}]{default}{disabled}: {p['description']}")
        if p["key_env_var"]:
            _click.echo(f"      Key: {p['key_env_var']}")
        _click.echo(f"      Default model: {p['default_model'] or '-'}")


# =============================================================================
# config
# =============================================================================


@cli.group()
def config_cmd() -> None:
    """Configuration management commands."""


# Register config_cmd with the name "config" to avoid shadowing the module
cli.add_command(config_cmd, name="config")


@config_cmd.command(name="show")
@_click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@_click.option("--section", type=str, default=None, help="Show specific section only")
@_click.pass_context
def config_show(ctx: _click.Context, as_json: bool, section: str | None) -> None:
    """Show effective configuration from all sources.

    API keys are masked.

    Examples:
        flarecore config show                       # YAML
        flarecore config show --json                # JSON
        flarecore config show --section providers   # One section
    """
    import yaml as _yaml

    settings: config.Settings = ctx.obj["settings"]
    full_config = settings.model_dump(mode="json")

    if section:
        if section not in full_config:
            raise _click.ClickException(f"Unknown section: {section}")
        full_config = {section: full_config[section]}

    if as_json:
        _click.echo(_json.dumps(full_config, indent=2))
        return

    yaml_text = _yaml.safe_dump(full_config, default_flow_style=False, sort_keys=False)
    if _sys.stdout.isatty():
        import rich.syntax as _rich_syntax

        _rich_console.Console().print(
            _rich_syntax.Syntax(yaml_text, "yaml", theme="monokai", background_color="default")
        )
    else:
        _click.echo(yaml_text)


@config_cmd.command(name="path")
@_click.option("--all", "show_all", is_flag=True, help="Show all paths even if not found")
def config_path(show_all: bool) -> None:
    """Show configuration file paths and their status."""
    paths = [
        ("Built-in defaults", config_sources.get_builtin_defaults_path()),
        ("User config", config_sources.get_user_config_path()),
    ]
    project_root = config.find_project_root()
    if project_root:
        paths.append(("Project config", config_sources.get_project_config_path(project_root)))

    for name, path in paths:
        exists = path.exists()
        if exists or show_all:
            status = "✓" if exists else "✗"
            _click.echo(f"{status} {name}: {path}")


def main() -> None:
    """Main entry point with correct program name."""
    cli(prog_name="flarecore")


if __name__ == "__main__":
    main()
