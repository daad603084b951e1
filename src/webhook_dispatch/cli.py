import logging
from dataclasses import replace
from pathlib import Path

import typer  # type: ignore
from rich.console import Console  # type: ignore
from rich.table import Table  # type: ignore

from webhook_dispatch.config import Settings
from webhook_dispatch.embeds import Embed
from webhook_dispatch.errors import WebhookError
from webhook_dispatch.message import WebhookMessageBuilder
from webhook_dispatch.types import ReceivedMessage
from webhook_dispatch.webhook_client import create_client

app = typer.Typer(help="webhook-dispatch: send messages to a webhook")
console = Console()


@app.callback()
def configure(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logs"),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


@app.command("send")
def send(
    content: str | None = typer.Argument(None, help="Message text"),
    files: list[Path] = typer.Option(
        [], "--file", "-f", help="File to attach (repeatable)"
    ),
    username: str | None = typer.Option(None, help="Override the webhook name"),
    avatar_url: str | None = typer.Option(None, help="Override the webhook avatar"),
    tts: bool = typer.Option(False, "--tts", help="Send as text-to-speech"),
    embed_title: str | None = typer.Option(None, help="Title of a single embed"),
    embed_description: str | None = typer.Option(
        None, help="Description of a single embed"
    ),
    url: str | None = typer.Option(None, help="Webhook URL (default: WEBHOOK_URL)"),
    timeout: float | None = typer.Option(None, help="Seconds to wait for delivery"),
) -> None:
    """Send one message and print the delivery result."""
    try:
        settings = Settings(webhook_url=url) if url else Settings.from_env()
    except RuntimeError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1) from e
    if timeout is not None:
        settings = replace(settings, timeout_seconds=timeout)

    try:
        builder = WebhookMessageBuilder()
        builder.set_content(content)
        if embed_title or embed_description:
            builder.add_embeds(Embed(title=embed_title, description=embed_description))
        for path in files:
            builder.add_file(path.name, path)
        builder.set_username(username or settings.username)
        builder.set_avatar_url(avatar_url or settings.avatar_url)
        builder.set_tts(tts)
        message = builder.build()
    except WebhookError as e:
        console.print(f"[red]Invalid message:[/red] {e}")
        raise typer.Exit(code=1) from e

    try:
        with create_client(settings) as client:
            with console.status("Sending webhook message..."):
                result = client.send(message).result(timeout=settings.timeout_seconds)
    except TimeoutError as e:
        console.print("[red]Send failed:[/red] timed out waiting for delivery")
        raise typer.Exit(code=1) from e
    except WebhookError as e:
        console.print(f"[red]Send failed:[/red] {e}")
        raise typer.Exit(code=1) from e

    _print_result(result)


def _print_result(result: ReceivedMessage | None) -> None:
    if result is None:
        console.print("[green]Message accepted.[/green]")
        return

    table = Table(title="Delivered message")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="white")
    table.add_row("id", str(result.id))
    table.add_row("channel", str(result.channel_id or "-"))
    table.add_row("content", result.content or "-")
    table.add_row("embeds", str(len(result.embeds)))
    table.add_row("attachments", ", ".join(result.attachment_names) or "-")
    console.print(table)


if __name__ == "__main__":
    app()
