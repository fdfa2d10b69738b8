"""Allow ``python -m linkmeup``."""

from linkmeup.cli import app

app()
