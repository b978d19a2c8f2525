"""Noxfile for the Data Transfer Hub S3 plugin deployment.

Provides automated sessions for:
- Linting and formatting
- Testing with coverage
- Type checking
- Security scanning
- Template synthesis
"""

import nox

# Python versions to test against
PYTHON_VERSIONS = ["3.11"]

# Common locations
PACKAGE_DIR = "src/transferhub"
INFRA_DIR = "infra"
SCRIPTS_DIR = "scripts"
TESTS_DIR = "tests"


@nox.session(python=PYTHON_VERSIONS)
def tests(session):
    """Run the test suite with coverage."""
    session.install(".[test]")

    session.run(
        "pytest",
        "--cov=transferhub",
        "--cov=" + INFRA_DIR,
        "--cov-report=term-missing",
        "--cov-fail-under=80",
        *session.posargs,
    )


@nox.session(python=PYTHON_VERSIONS)
def lint(session):
    """Run linting with ruff."""
    session.install("ruff")
    session.run("ruff", "check", ".")


@nox.session(python=PYTHON_VERSIONS)
def format(session):
    """Format code with black and ruff."""
    session.install("black", "ruff")
    session.run("black", ".")
    session.run("ruff", "check", "--fix", ".")


@nox.session(python=PYTHON_VERSIONS)
def typecheck(session):
    """Run type checking with mypy."""
    session.install(".")
    session.install("mypy", "types-PyYAML")
    session.run("mypy", PACKAGE_DIR, INFRA_DIR)


@nox.session(python=PYTHON_VERSIONS)
def security(session):
    """Run security checks."""
    session.install("bandit[toml]")
    session.run("bandit", "-c", "pyproject.toml", "-r", PACKAGE_DIR, INFRA_DIR, SCRIPTS_DIR)


@nox.session(python=PYTHON_VERSIONS)
def synth(session):
    """Synthesize both runtime modes without deploying."""
    session.install(".")
    for run_type in ("cluster", "fleet"):
        session.log(f"Synthesizing {run_type} mode")
        session.run(
            "python", "scripts/deploy_transfer.py",
            "--synth-only", "--run-type", run_type,
            *session.posargs,
        )


@nox.session
def clean(session):
    """Clean up build artifacts and cache files."""
    import shutil
    from pathlib import Path

    clean_dirs = [
        ".pytest_cache",
        ".coverage",
        "htmlcov",
        "cdk.out",
        "dist",
        "build",
        "*.egg-info",
        ".mypy_cache",
        ".ruff_cache",
        "__pycache__",
    ]

    for pattern in clean_dirs:
        for path in Path(".").glob(f"**/{pattern}"):
            if path.is_dir():
                session.log(f"Removing directory: {path}")
                shutil.rmtree(path)
            elif path.is_file():
                session.log(f"Removing file: {path}")
                path.unlink()


# Default session when running `nox` without arguments
nox.options.sessions = ["tests", "lint", "typecheck"]
