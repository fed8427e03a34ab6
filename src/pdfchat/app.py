# /pdfchat/app.py
"""
Main application file for the PDF chat CLI.
Handles the Command-Line Interface (CLI) and user interactions; every action
is delegated to a SessionController.
"""
import os
import sys
from pathlib import Path

# Rich UI Components
from rich.markdown import Markdown
from rich.panel import Panel
from rich.prompt import Prompt
from rich.text import Text

# Local module imports
from .config import API_BASE_URL, API_MODEL_NAME, MAX_UPLOAD_SIZE_MB, console
from .errors import LoadInProgress
from .models import DocumentFile, Message, SessionStatus
from .observability import get_logger
from .session_controller import SessionController

logger = get_logger(__name__)


# --- UI & Formatting Functions ---

def display_welcome_banner():
    """Displays the application's welcome banner."""
    console.print(Panel(
        "[bold magenta]PDF ChatBot[/bold magenta]",
        subtitle=f"[cyan]Model: {API_MODEL_NAME}[/cyan]",
        expand=False
    ))
    console.print(f"[green]Service: {API_BASE_URL}  |  Max PDF size: {MAX_UPLOAD_SIZE_MB} MB[/green]")


def status_style(kind: str) -> str:
    """Maps a status kind onto a rich style."""
    if kind == "error":
        return "bold red"
    if kind == "success":
        return "bold green"
    return "white"


def render_status(status: SessionStatus):
    if status.message:
        console.print(Text(status.message, style=status_style(status.kind)))


def render_message(message: Message):
    if message.type == "request":
        console.print(Panel(Text(message.text), title="You", title_align="left", border_style="cyan"))
    else:
        console.print(Panel(Markdown(message.text), title="Bot", title_align="left", border_style="magenta"))


# --- Main Application Flow ---

def _resolve_upload_path(raw_input: str) -> tuple[Path | None, str | None]:
    """Normalizes and validates user-provided file path."""
    cleaned = str(raw_input or "").strip().strip('"').strip("'")
    if not cleaned:
        return None, "Error: Empty path provided."
    try:
        resolved = Path(cleaned).expanduser().resolve(strict=True)
    except FileNotFoundError:
        return None, f"Error: File not found at '{cleaned}'"
    except OSError as exc:
        return None, f"Error: Invalid path '{cleaned}' ({exc})"

    if os.name == "nt":
        is_reserved_fn = getattr(os.path, "isreserved", None)
        if callable(is_reserved_fn) and is_reserved_fn(str(resolved)):
            return None, f"Error: Reserved path is not allowed: '{resolved}'"
    if not resolved.is_file():
        return None, f"Error: Path is not a regular file: '{resolved}'"
    return resolved, None


def handle_choose_file(controller: SessionController):
    """CLI flow for selecting a PDF without loading it."""
    file_path, error_message = _resolve_upload_path(Prompt.ask("Enter the full path to your PDF"))
    if file_path is None:
        console.print(f"[bold red]{error_message}[/bold red]")
        return
    controller.select_file(DocumentFile.from_path(file_path))
    console.print(f"[green]Selected: {file_path.name}[/green]")


def handle_load(controller: SessionController):
    """CLI flow for loading the selected PDF."""
    try:
        with console.status("[bold cyan]Loading...[/bold cyan]", spinner="dots"):
            outcome = controller.load()
    except LoadInProgress as exc:
        console.print(f"[yellow]{exc.message}[/yellow]")
        return
    render_status(outcome.status)
    if outcome.succeeded or outcome.state == "unchanged":
        for message in controller.messages():
            render_message(message)


def handle_set_api_key(controller: SessionController):
    key = Prompt.ask("Enter your API key", password=True)
    controller.set_credential(key)
    console.print("[green]API key saved for this session.[/green]" if controller.has_credential else "[yellow]API key cleared.[/yellow]")


def handle_close_file(controller: SessionController):
    try:
        controller.close_file()
    except LoadInProgress as exc:
        console.print(f"[yellow]{exc.message}[/yellow]")
        return
    console.print("[green]PDF closed.[/green]")


def handle_qa_session(controller: SessionController):
    """Enters the question loop for the current PDF."""
    console.print("\n[bold green]Q&A Session Started.[/bold green] [italic]Type 'back' to return to menu.[/italic]")
    if controller.current_filename:
        console.print(f"[green]Current PDF: {controller.current_filename}[/green]")
    while True:
        query = Prompt.ask("[bold cyan]Ask a question (or type 'back' to go back to the menu)[/bold cyan]")
        if query.strip().lower() == "back":
            break
        if not query.strip():
            continue
        with console.status("[bold cyan]Thinking...[/bold cyan]", spinner="dots"):
            outcome = controller.ask(query)
        if outcome.succeeded:
            render_message(outcome.answer)
        else:
            render_status(outcome.status)


def handle_show_conversation(controller: SessionController):
    for message in controller.messages():
        render_message(message)
    render_status(controller.status)


def main():
    """Main application loop."""
    display_welcome_banner()
    controller = SessionController()
    for message in controller.messages():
        render_message(message)

    try:
        while True:
            try:
                console.print("\n[bold]Main Menu:[/bold]")
                console.print("[green]1. Choose PDF[/green]")
                console.print("[green]2. Load PDF[/green]")
                console.print("[blue]3. Ask Questions[/blue]")
                console.print("[cyan]4. Set API Key[/cyan]")
                console.print("[cyan]5. Show Conversation[/cyan]")
                console.print("[yellow]6. Close PDF[/yellow]")
                console.print("[red]7. Exit[/red]")

                choice = Prompt.ask("Choose an option", choices=["1", "2", "3", "4", "5", "6", "7"])

                if choice == "1":
                    handle_choose_file(controller)
                elif choice == "2":
                    handle_load(controller)
                elif choice == "3":
                    handle_qa_session(controller)
                elif choice == "4":
                    handle_set_api_key(controller)
                elif choice == "5":
                    handle_show_conversation(controller)
                elif choice == "6":
                    handle_close_file(controller)
                elif choice == "7":
                    break
            except KeyboardInterrupt:
                break
    finally:
        controller.close()

    console.print("\n[bold magenta]Goodbye![/bold magenta]")
    sys.exit(0)


if __name__ == "__main__":
    main()
