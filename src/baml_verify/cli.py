import json
from pathlib import Path
import click
from .logic import verify_file

@click.group()
def main():
    pass

@main.command("file")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def file_cmd(path: Path):
    result = verify_file(path)
    click.echo(json.dumps(result, sort_keys=True, separators=(",", ":"), ensure_ascii=False))
    if result["status"] != "PASS":
        raise SystemExit(1)

if __name__ == "__main__":
    main()
