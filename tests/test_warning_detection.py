"""
Tests for the conftest.py warning detection on integration tests.

Integration runs over the in-memory backlog must be silent: a warning logged
by backlog_buddy during an integration test fails that test, while unit tests
may log warnings freely.
"""

import shutil
import subprocess
import sys
from pathlib import Path

import pytest

from backlog_buddy.orchestrator import validate_item


@pytest.mark.unit
class TestUnitTestWarningBehavior:
    """Verify that unit tests allow warnings without failing."""

    def test_unit_test_allows_logger_warnings(self, fake_repo, caplog: pytest.LogCaptureFixture) -> None:
        """Looking up an unknown item logs a warning, which is fine in a unit test."""
        assert validate_item(fake_repo, 404) is None
        assert "Work item #404 not found" in caplog.text


@pytest.mark.integration
class TestIntegrationTestWarningBehavior:
    """Verify that integration tests fail when warnings are detected."""

    def _run_pytest(self, tmp_path: Path, test_source: str) -> subprocess.CompletedProcess[str]:
        shutil.copy(Path(__file__).parent / "conftest.py", tmp_path / "conftest.py")
        (tmp_path / "pytest.ini").write_text("[pytest]\nmarkers =\n    integration: end-to-end test\n")
        test_file = tmp_path / "test_temp_warning.py"
        test_file.write_text(test_source)

        return subprocess.run(  # noqa: S603
            [sys.executable, "-m", "pytest", str(test_file), "-v", "--tb=short", "-p", "no:cacheprovider"],
            capture_output=True,
            text=True,
            cwd=str(tmp_path),
            check=False,
        )

    def test_silent_integration_test_passes(self, tmp_path: Path) -> None:
        result = self._run_pytest(
            tmp_path,
            """
import pytest

from backlog_buddy.orchestrator import run_release_trains

@pytest.mark.integration
def test_silent(fake_repo):
    assert run_release_trains(fake_repo).backlog_read_successfully
""",
        )
        assert result.returncode == 0, f"Expected test to pass:\n{result.stdout}\n{result.stderr}"

    def test_integration_test_with_warning_fails(self, tmp_path: Path) -> None:
        result = self._run_pytest(
            tmp_path,
            """
import pytest

from backlog_buddy.orchestrator import validate_item

@pytest.mark.integration
def test_warning(fake_repo):
    assert validate_item(fake_repo, 404) is None
""",
        )
        assert result.returncode != 0, f"Expected test to fail but it passed:\n{result.stdout}"
        assert "warning(s) detected" in result.stdout, f"stdout: {result.stdout}\nstderr: {result.stderr}"
        assert "Work item #404 not found" in result.stdout
