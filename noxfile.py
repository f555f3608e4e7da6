import nox

PYTHON_VERSIONS = ["3.11", "3.12", "3.13"]


def _install(session: nox.Session) -> None:
    """Install the project with its test extra into the nox virtualenv."""
    session.install("-e", ".[test]")


@nox.session(python=PYTHON_VERSIONS)
def tests(session: nox.Session) -> None:
    """Run full test suite across Python versions."""
    _install(session)
    session.run("pytest", *session.posargs)


@nox.session(python=PYTHON_VERSIONS)
def tests_domain(session: nox.Session) -> None:
    """Run domain-layer tests only (no adapters involved)."""
    _install(session)
    session.run("pytest", "-m", "domain")


@nox.session(python=PYTHON_VERSIONS[-1])
def tests_integration(session: nox.Session) -> None:
    """HTTP adapter and API tests."""
    _install(session)
    session.run("pytest", "-m", "integration")


@nox.session(python=PYTHON_VERSIONS[-1])
def tests_bdd(session: nox.Session) -> None:
    """Gherkin scenarios for checkout and fulfillment."""
    _install(session)
    session.run("pytest", "-m", "bdd")
