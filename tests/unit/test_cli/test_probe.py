"""Unit tests for the discovery probe CLI."""

import gzip
from pathlib import Path

import httpx
import pytest
import structlog
from click.testing import CliRunner

from kube_discovery import __version__
from kube_discovery.api import DiscoveryAPI
from kube_discovery.cli import probe
from kube_discovery.observability.metrics import DiscoveryMetrics
from kube_discovery.settings.app import DiscoverySettings


PODS_BODY = b'{"kind":"PodList","items":[]}'


@pytest.fixture
def runner() -> CliRunner:
    """Provide a click test runner."""
    return CliRunner()


@pytest.fixture
def token_file(tmp_path: Path) -> Path:
    """Create a bearer token file."""
    path = tmp_path / "token"
    path.write_text("cli-token\n", encoding="utf-8")
    return path


@pytest.fixture
def requests(monkeypatch: pytest.MonkeyPatch) -> list[httpx.Request]:
    """Route the CLI's API clients through a mock transport.

    Returns:
        Requests seen by the mock API server.
    """
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if request.url.path == "/api/v1/secrets":
            return httpx.Response(403, content=b"forbidden")
        return httpx.Response(
            200,
            content=gzip.compress(PODS_BODY),
            headers={"Content-Encoding": "gzip"},
        )

    class MockedDiscoveryAPI:
        @staticmethod
        def from_settings(settings: DiscoverySettings) -> DiscoveryAPI:
            return DiscoveryAPI.from_settings(
                settings,
                transport=httpx.MockTransport(handler),
                metrics=DiscoveryMetrics(),
            )

    monkeypatch.setattr(probe, "DiscoveryAPI", MockedDiscoveryAPI)
    return seen


class TestResolveCommand:
    """Tests for the resolve command."""

    def test_explicit_server(self, runner: CliRunner, token_file: Path) -> None:
        """Explicit servers print address, port and auth scheme."""
        result = runner.invoke(
            probe.cli,
            [
                "resolve",
                "--api-server",
                "http://api.example.com",
                "--bearer-token-file",
                str(token_file),
            ],
        )

        assert result.exit_code == 0, result.output
        assert "Server: http://api.example.com" in result.output
        assert "Host: api.example.com:80" in result.output
        assert "Auth: Bearer" in result.output
        assert "cli-token" not in result.output

    def test_from_config_file(self, runner: CliRunner, tmp_path: Path) -> None:
        """Configs can be read from a YAML file."""
        (tmp_path / "token").write_text("t\n", encoding="utf-8")
        config_path = tmp_path / "sd.yaml"
        config_path.write_text(
            "kubernetes_sd_configs:\n"
            "  - api_server: http://first.example.com\n"
            "  - api_server: https://second.example.com\n"
            "    bearer_token_file: token\n",
            encoding="utf-8",
        )

        result = runner.invoke(
            probe.cli, ["resolve", "--config", str(config_path), "--index", "1"]
        )

        assert result.exit_code == 0, result.output
        assert "Host: second.example.com:443" in result.output

    def test_index_out_of_range(self, runner: CliRunner, tmp_path: Path) -> None:
        """Out-of-range indexes are usage errors."""
        config_path = tmp_path / "sd.yaml"
        config_path.write_text(
            "kubernetes_sd_configs:\n  - api_server: http://a\n", encoding="utf-8"
        )

        result = runner.invoke(
            probe.cli, ["resolve", "--config", str(config_path), "--index", "3"]
        )

        assert result.exit_code == 2

    def test_bad_scheme(self, runner: CliRunner) -> None:
        """Malformed servers exit with an error message."""
        result = runner.invoke(probe.cli, ["resolve", "--api-server", "ftp://a"])

        assert result.exit_code == 1
        assert "unsupported scheme" in result.output

    def test_missing_in_cluster_environment(
        self, runner: CliRunner, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Without api_server and outside a pod the missing variable is named."""
        monkeypatch.delenv("KUBERNETES_SERVICE_HOST", raising=False)

        result = runner.invoke(probe.cli, ["resolve"])

        assert result.exit_code == 1
        assert "KUBERNETES_SERVICE_HOST" in result.output


class TestFetchCommand:
    """Tests for the fetch command."""

    def test_fetch_writes_body(
        self,
        runner: CliRunner,
        token_file: Path,
        requests: list[httpx.Request],
    ) -> None:
        """The decompressed body is written to stdout."""
        result = runner.invoke(
            probe.cli,
            [
                "fetch",
                "--api-server",
                "https://api.example.com:6443",
                "--bearer-token-file",
                str(token_file),
                "--namespace",
                "default",
                "--role",
                "pod",
                "--path",
                "/api/v1/pods",
                "--label-selector",
                "app=web",
            ],
        )

        assert result.exit_code == 0, result.output
        assert result.stdout_bytes == PODS_BODY
        request = requests[0]
        assert request.headers["Authorization"] == "Bearer cli-token"
        assert request.url.params["labelSelector"] == "app=web"
        assert request.url.params["fieldSelector"] == "metadata.namespace=default"

    def test_size_only(
        self,
        runner: CliRunner,
        requests: list[httpx.Request],
    ) -> None:
        """--size-only prints the payload size."""
        result = runner.invoke(
            probe.cli,
            [
                "fetch",
                "--api-server",
                "http://api.example.com",
                "--role",
                "node",
                "--path",
                "/api/v1/nodes",
                "--size-only",
            ],
        )

        assert result.exit_code == 0, result.output
        assert result.output.strip() == str(len(PODS_BODY))

    def test_unexpected_status(
        self,
        runner: CliRunner,
        requests: list[httpx.Request],
    ) -> None:
        """Non-200 responses exit with the status in the message."""
        result = runner.invoke(
            probe.cli,
            [
                "fetch",
                "--api-server",
                "http://api.example.com",
                "--role",
                "pod",
                "--path",
                "/api/v1/secrets",
            ],
        )

        assert result.exit_code == 1
        assert "unexpected status code" in result.output
        assert "403" in result.output

    def test_unknown_role(self, runner: CliRunner) -> None:
        """Roles are limited to the known set."""
        result = runner.invoke(
            probe.cli,
            ["fetch", "--api-server", "http://a", "--role", "job", "--path", "/x"],
        )

        assert result.exit_code == 2


class TestLogging:
    """Tests for log setup of the commands."""

    @pytest.fixture
    def log_formats(self, monkeypatch: pytest.MonkeyPatch) -> list[bool]:
        """Record the log format each command configures."""
        formats: list[bool] = []

        def fake_configure_logging(level: int | str, json_format: bool) -> None:
            formats.append(json_format)

        monkeypatch.setattr(probe, "configure_logging", fake_configure_logging)
        return formats

    @pytest.mark.parametrize(
        ("env_value", "flags", "expected"),
        [
            (None, [], True),
            ("false", [], False),
            ("false", ["--json-logs"], True),
            ("true", ["--no-json-logs"], False),
        ],
    )
    def test_log_format_from_settings_or_flag(  # noqa: PLR0913
        self,
        runner: CliRunner,
        token_file: Path,
        monkeypatch: pytest.MonkeyPatch,
        log_formats: list[bool],
        env_value: str | None,
        flags: list[str],
        expected: bool,
    ) -> None:
        """KUBE_SD_LOG_JSON picks the format unless a flag overrides it."""
        if env_value is None:
            monkeypatch.delenv("KUBE_SD_LOG_JSON", raising=False)
        else:
            monkeypatch.setenv("KUBE_SD_LOG_JSON", env_value)

        result = runner.invoke(
            probe.cli,
            [
                "resolve",
                "--api-server",
                "http://api.example.com",
                "--bearer-token-file",
                str(token_file),
                *flags,
            ],
        )

        assert result.exit_code == 0, result.output
        assert log_formats == [expected]

    def test_fetch_clears_source_context(
        self,
        runner: CliRunner,
        token_file: Path,
        requests: list[httpx.Request],
        log_formats: list[bool],
    ) -> None:
        """The source identity is not left bound after a fetch."""
        result = runner.invoke(
            probe.cli,
            [
                "fetch",
                "--api-server",
                "http://api.example.com",
                "--bearer-token-file",
                str(token_file),
                "--role",
                "pod",
                "--path",
                "/api/v1/secrets",
            ],
        )

        assert result.exit_code == 1
        assert len(requests) == 1
        assert "config_fingerprint" not in structlog.contextvars.get_contextvars()


class TestVersion:
    """Tests for --version."""

    def test_version(self, runner: CliRunner) -> None:
        result = runner.invoke(probe.cli, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output
