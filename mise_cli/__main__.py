"""Allow ``python -m mise_cli``."""

from .cli import app

app(prog_name="mise")
