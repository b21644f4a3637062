#!/usr/bin/env python3

import click

from imageprune import __version__
from imageprune.commands.config import config_cmd
from imageprune.commands.prune import prune_handler


@click.group()
@click.version_option(version=__version__, prog_name="imageprune")
def cli():
    """imageprune - Prune stale container images of a GitHub repository.

    Keeps image versions that are recent or still referenced by a live
    branch, tag or open pull request, and deletes the rest from GitHub
    Packages.
    """
    pass


cli.add_command(prune_handler, name='prune')
cli.add_command(config_cmd)


def main():
    cli()

if __name__ == "__main__":
    main()
