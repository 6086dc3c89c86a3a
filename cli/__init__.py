"""Command-line tools for running and exercising the sensor ingest proxy.

The Typer application lives in ``cli.app`` and is not re-exported here;
tests patch attributes on the ``cli.app`` module.
"""
