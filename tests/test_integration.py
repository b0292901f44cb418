"""Integration tests for SEO Insights.

Covers module imports, application wiring, configuration loading, CLI
smoke tests, and syntax validation of every Python file in the project.
"""

import ast
import importlib
import json
from pathlib import Path

import pytest
import yaml

# ---------------------------------------------------------------------------
# Project root (conftest.py already puts it on sys.path)
# ---------------------------------------------------------------------------
PROJECT_ROOT = Path(__file__).resolve().parent.parent
SETTINGS_PATH = PROJECT_ROOT / "config" / "settings.yaml"


@pytest.fixture()
def no_api_key(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)


@pytest.fixture()
def rows_file(tmp_path, make_gsc_rows):
    def _write(count):
        path = tmp_path / ("rows_" + str(count) + ".json")
        path.write_text(json.dumps({"rows": make_gsc_rows(count)}), encoding="utf-8")
        return str(path)
    return _write


# ===========================================================================
# 1. Module imports
# ===========================================================================
class TestModuleImports:
    """Every module should import and expose its public names."""

    @pytest.mark.parametrize("module_path,names", [
        ("src.errors", ["SEOInsightsError", "ApiError", "RateLimitExceeded", "AllChunksFailed"]),
        ("src.models", ["ReportType", "ReportKind", "PromptRequest", "Chunk", "ChunkResult"]),
        ("src.utils.text_processing", ["estimate_tokens", "get_model_token_limit"]),
        ("src.utils.chunking", ["ChunkingEngine"]),
        ("src.utils.rate_limiter", ["RateLimitedQueue", "RateWindow"]),
        ("src.utils.response_cache", ["ResponseCache"]),
        ("src.utils.result_combiner", ["ResultCombiner", "parse_result"]),
        ("src.integrations.llm_client", ["LLMClient", "UsageStats"]),
        ("src.integrations.request_orchestrator", ["RequestOrchestrator"]),
        ("src.modules.reporting", ["ReportEngine", "REPORT_TEMPLATES"]),
        ("src.config", ["LLMSettings", "load_settings"]),
        ("src.app", ["SEOInsightsApp"]),
        ("src.cli", ["app", "main"]),
    ])
    def test_module_importable(self, module_path, names):
        module = importlib.import_module(module_path)
        for name in names:
            assert hasattr(module, name), module_path + " is missing " + name


# ===========================================================================
# 2. Application wiring
# ===========================================================================
class TestSEOInsightsApp:

    def test_requires_initialize(self):
        from src.app import SEOInsightsApp

        with pytest.raises(RuntimeError):
            SEOInsightsApp(config_path=str(SETTINGS_PATH)).get_status()

    def test_status_without_key(self, no_api_key, tmp_path):
        from src.app import SEOInsightsApp

        insights_app = SEOInsightsApp(
            config_path=str(SETTINGS_PATH), env_path=str(tmp_path / ".env")
        )
        insights_app.initialize()
        status = insights_app.get_status()
        assert status["config"]["status"] == "ok"
        assert status["api_key"]["status"] == "error"
        assert "usage" not in status

    def test_report_engine_needs_key(self, no_api_key, tmp_path):
        from src.app import SEOInsightsApp
        from src.errors import ConfigurationError

        insights_app = SEOInsightsApp(
            config_path=str(SETTINGS_PATH), env_path=str(tmp_path / ".env")
        )
        insights_app.initialize()
        with pytest.raises(ConfigurationError):
            insights_app.get_report_engine()

    def test_usage_reported_once_built(self, monkeypatch, tmp_path):
        from src.app import SEOInsightsApp

        monkeypatch.setenv("OPENAI_API_KEY", "sk-test-integration-key")
        insights_app = SEOInsightsApp(
            config_path=str(SETTINGS_PATH), env_path=str(tmp_path / ".env")
        )
        insights_app.initialize()
        engine = insights_app.get_report_engine()
        assert engine is insights_app.get_report_engine()
        status = insights_app.get_status()
        assert status["api_key"]["details"].startswith("sk-test-")
        assert "0 requests" in status["usage"]["details"]


# ===========================================================================
# 3. Config / settings.yaml
# ===========================================================================
class TestSettingsYaml:

    def test_settings_file_exists(self):
        assert SETTINGS_PATH.exists(), "config/settings.yaml not found"

    def test_settings_has_required_sections(self):
        config = yaml.safe_load(SETTINGS_PATH.read_text(encoding="utf-8"))
        for section in ("app", "llm", "rate_limits", "cache", "logging"):
            assert section in config, "settings.yaml missing section: " + section

    def test_settings_app_name(self):
        config = yaml.safe_load(SETTINGS_PATH.read_text(encoding="utf-8"))
        assert config["app"]["name"] == "SEO Insights"

    def test_settings_load_into_llm_settings(self, no_api_key):
        from src.config import load_settings

        settings = load_settings(str(SETTINGS_PATH), env_path=None)
        assert settings.requests_per_minute == 60
        assert settings.min_interval_seconds == 1.0
        assert settings.max_input_tokens is None


# ===========================================================================
# 4. CLI commands (smoke test via CliRunner)
# ===========================================================================
class TestCLICommands:

    def _get_runner_and_app(self):
        from typer.testing import CliRunner
        from src.cli import app
        return CliRunner(), app

    def test_main_help(self):
        runner, app = self._get_runner_and_app()
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "SEO Insights" in result.output

    @pytest.mark.parametrize("command", ["report", "plan", "ping", "status"])
    def test_command_help(self, command):
        runner, app = self._get_runner_and_app()
        result = runner.invoke(app, [command, "--help"])
        assert result.exit_code == 0, (
            "'" + command + " --help' failed with exit code "
            + str(result.exit_code) + ": " + result.output
        )

    def test_plan_small_prompt_fits(self, rows_file):
        runner, app = self._get_runner_and_app()
        result = runner.invoke(app, ["plan", rows_file(5)])
        assert result.exit_code == 0
        assert "fits in one request" in result.output

    def test_plan_large_prompt_chunked(self, rows_file):
        runner, app = self._get_runner_and_app()
        result = runner.invoke(app, ["plan", rows_file(300), "--model", "gpt-3.5-turbo"])
        assert result.exit_code == 0
        assert "Prompt total" in result.output

    def test_unknown_report_type_rejected(self, rows_file):
        runner, app = self._get_runner_and_app()
        result = runner.invoke(app, ["plan", rows_file(5), "--type", "nonsense"])
        assert result.exit_code != 0

    def test_report_without_key_fails_cleanly(self, rows_file, no_api_key):
        runner, app = self._get_runner_and_app()
        result = runner.invoke(app, [
            "report", rows_file(12), "--start", "2025-01-01", "--end", "2025-03-31",
            "--config", str(SETTINGS_PATH),
        ])
        assert result.exit_code == 1
        assert "ConfigurationError" in result.output

    def test_status_runs(self, no_api_key):
        runner, app = self._get_runner_and_app()
        result = runner.invoke(app, ["status", "--config", str(SETTINGS_PATH)])
        assert result.exit_code == 0
        assert "Component Status" in result.output


# ===========================================================================
# 5. All Python files syntax validation
# ===========================================================================
class TestAllPythonFilesSyntax:
    """Every .py file in src/ and tests/ should pass ast.parse."""

    def _collect_python_files(self):
        files = []
        for directory in ("src", "tests"):
            base = PROJECT_ROOT / directory
            if base.exists():
                for py_file in base.rglob("*.py"):
                    parts = py_file.parts
                    if "venv" in parts or "__pycache__" in parts:
                        continue
                    files.append(py_file)
        return sorted(files)

    def test_all_python_files_parse(self):
        py_files = self._collect_python_files()
        assert len(py_files) > 0, "No Python files found"
        errors = []
        for py_file in py_files:
            try:
                ast.parse(py_file.read_text(encoding="utf-8"))
            except SyntaxError as exc:
                errors.append(str(py_file.relative_to(PROJECT_ROOT)) + ": " + str(exc))
        if errors:
            pytest.fail("Python syntax errors found:\n" + "\n".join(errors[:20]))


# ===========================================================================
# 6. Requirements / key packages importable
# ===========================================================================
class TestRequirementsInstallable:

    @pytest.mark.parametrize("package", ["typer", "rich", "yaml", "dotenv", "openai", "httpx"])
    def test_package_importable(self, package):
        importlib.import_module(package)
