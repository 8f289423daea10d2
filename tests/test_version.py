from typer.testing import CliRunner

import bibcite
from bibcite.ui.cli import app


def test_get_version_matches_public_api() -> None:
    assert bibcite.get_version() == bibcite.__version__
    assert isinstance(bibcite.__version__, str)


def test_cli_version_flag() -> None:
    runner = CliRunner()
    result = runner.invoke(app, ["--version"])

    assert result.exit_code == 0, result.stdout
    assert result.stdout.strip() == bibcite.get_version()
