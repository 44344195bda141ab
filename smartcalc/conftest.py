import pytest

from smartcalc.config import ENV_VARS
from smartcalc.main import Calculator


@pytest.fixture
def calculator():
    return Calculator()


@pytest.fixture
def clean_env(monkeypatch):
    # set-then-delete makes monkeypatch remove the variable again at teardown,
    # even when load_dotenv() wrote it during the test
    for var in ENV_VARS.values():
        monkeypatch.setenv(var, "")
        monkeypatch.delenv(var)
    return monkeypatch


@pytest.hookimpl(hookwrapper=True)
def pytest_runtest_makereport(item, call):
    outcome = yield
    report = outcome.get_result()
    if report.when == "call":
        print(f"TEST: {item.name} - {'PASSED' if report.passed else 'FAILED'}")
