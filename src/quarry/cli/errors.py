"""Quarry rich error messages.

Every error shown to the user states what went wrong and the exact action
that fixes it.

Usage:
    from quarry.cli.errors import err_no_db
    console.print(err_no_db(".quarry.db"))
    raise typer.Exit(1)
"""

from __future__ import annotations

from quarry.ingest.extract import SUPPORTED_EXTENSIONS


def err_no_api_key(provider: str) -> str:
    """No API key for *provider*.

    Example:
        No API key for 'openai'. Set:  export OPENAI_API_KEY=sk-...
    """
    env_map = {
        "openai": "OPENAI_API_KEY",
        "anthropic": "ANTHROPIC_API_KEY",
        "cohere": "COHERE_API_KEY",
        "mistral": "MISTRAL_API_KEY",
        "azure": "AZURE_API_KEY",
    }
    env_var = env_map.get(provider.lower(), f"{provider.upper()}_API_KEY")
    return (
        f"[red]Error:[/] No API key for '{provider}'.\n"
        f"  Set:  export {env_var}=sk-...\n"
        "  Or point the model at a local Ollama server (ollama/..., ollama_chat/...)."
    )


def err_no_db(db_path: str = ".quarry.db") -> str:
    return (
        f"[red]Error:[/] No database found at '{db_path}'.\n"
        "  Run:  quarry init"
    )


def err_config(message: str) -> str:
    return f"[red]Config error:[/] {message}"


def err_not_found(kind: str, ident: object) -> str:
    """Area / document / chat id does not exist; point at the matching list command."""
    hints = {
        "area": "quarry area list",
        "document": "quarry doc list <AREA_ID>",
        "chat": "quarry chat list <AREA_ID>",
    }
    hint = hints.get(kind, "quarry area list")
    return (
        f"[red]Error:[/] {kind.capitalize()} {ident} not found.\n"
        f"  Run:  {hint}  to see valid ids."
    )


def err_unsupported_file(file_type: str) -> str:
    allowed = ", ".join(sorted(SUPPORTED_EXTENSIONS))
    return (
        f"[red]Error:[/] Unsupported file type: '{file_type}'.\n"
        f"  Supported types: {allowed}"
    )


def err_invalid_upload(message: str) -> str:
    return (
        f"[red]Error:[/] {message}\n"
        "  Upload a non-empty .pdf, .docx, .txt or .md file."
    )


def err_already_processing(document_id: int) -> str:
    return (
        f"[yellow]Document {document_id} is already being analyzed.[/]\n"
        "  Wait for it to finish, then check:  quarry doc list <AREA_ID>"
    )


def err_ingest_failed(file_name: str, error: str | None) -> str:
    return (
        f"[red]✗ Analysis failed:[/] {file_name}\n"
        f"  {error or 'unknown error'}\n"
        "  Fix the cause (file content, model server), then run:  quarry doc analyze <DOC_ID>"
    )


def err_answer_failed(error: str) -> str:
    return (
        f"[red]Error:[/] The assistant could not answer: {error}\n"
        "  Check that the embedding and generation models are reachable, then ask again."
    )


def err_empty_question() -> str:
    return "[red]Error:[/] Question must not be empty."
