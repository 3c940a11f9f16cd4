"""baml-index - BAML file to inspection bundle."""
from __future__ import annotations

from pathlib import Path

import click

from baml_index.bundle import compile_record_index


@click.command()
@click.argument("baml", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("out", type=click.Path(file_okay=False, path_type=Path))
def main(baml: Path, out: Path) -> None:
    """Compile a BAML file into records.parquet, tree.json and manifest.json."""
    try:
        compile_record_index(baml, out)
    except Exception as e:
        # Fail closed with a single-line reason, no stack trace.
        message = str(e)
        click.echo(message if message.startswith("FATAL:") else f"FATAL: {message}")
        raise SystemExit(1)


if __name__ == "__main__":
    main()
