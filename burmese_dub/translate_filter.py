"""One-shot translation filter: source text on stdin, translation on stdout.

Run as ``python -m burmese_dub.translate_filter --source en --target my``.
"""

import logging
import sys

import typer
from deep_translator import GoogleTranslator

app = typer.Typer(add_completion=False)

logger = logging.getLogger(__name__)


@app.command()
def main(
    source: str = typer.Option("en", "--source", help="Source language code"),
    target: str = typer.Option("my", "--target", help="Target language code"),
) -> None:
    """Translate standard input and print the result."""
    text = sys.stdin.read()
    if not text.strip():
        return

    try:
        result = GoogleTranslator(source=source, target=target).translate(text)
    except Exception as e:
        logger.error("Translation request failed: %s", e)
        raise typer.Exit(1)

    typer.echo(result or "")


if __name__ == "__main__":
    app()
