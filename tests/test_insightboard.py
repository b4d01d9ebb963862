import allure
from click.testing import CliRunner

from insightboard import __version__
from insightboard.main import insightboard

pytestmark = [
    allure.epic("Job Pipeline"),
    allure.feature("CLI Ops"),
]


def test_version():
    assert __version__


def test_version_option():
    runner = CliRunner()
    result = runner.invoke(insightboard, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output
