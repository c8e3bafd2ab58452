from mem.cli import cli

cli()
