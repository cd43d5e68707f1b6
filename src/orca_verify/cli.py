import json
from pathlib import Path

import click

from orca_core.logging_utils import LOG_LEVELS, configure_logging

from .logic import verify_blob_file


@click.group()
@click.option(
    "--log-level",
    envvar="ORCA_LOG_LEVEL",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="WARNING",
    show_default=True,
)
def main(log_level: str):
    configure_logging(log_level)


@main.command("blob")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def blob_cmd(path: Path):
    result = verify_blob_file(path)
    click.echo(json.dumps(result, sort_keys=True, separators=(",", ":"), ensure_ascii=False))
    if result["status"] != "PASS":
        raise SystemExit(1)


if __name__ == "__main__":
    main()
