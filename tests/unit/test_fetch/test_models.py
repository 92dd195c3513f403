"""Unit tests for fetch models, configuration, and trust policy."""

import ssl
from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from resilient_fetch.fetch.cancellation import CancellationToken
from resilient_fetch.fetch.config import FetchConfig
from resilient_fetch.fetch.models import FetchResult, RetryBudget
from resilient_fetch.fetch.trust import TrustPolicy, platform_hostname_verifier


class TestRetryBudget:
    """Tests for RetryBudget."""

    def test_defaults(self) -> None:
        """Defaults give a 2 second base and a 32 second ceiling."""
        budget = RetryBudget()

        assert budget.base_delay_seconds == 2
        assert budget.retry_exponent == 5
        assert budget.max_delay_seconds == 32

    def test_exponent_zero(self) -> None:
        """An exponent of zero yields a ceiling of one second."""
        assert RetryBudget(retry_exponent=0).max_delay_seconds == 1

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"base_delay_seconds": 0},
            {"base_delay_seconds": 1},
            {"base_delay_seconds": 61},
            {"retry_exponent": -1},
        ],
    )
    def test_out_of_range_rejected(self, kwargs: dict[str, int]) -> None:
        """Values outside the allowed range fail validation."""
        with pytest.raises(ValidationError):
            RetryBudget(**kwargs)


class TestFetchConfig:
    """Tests for FetchConfig."""

    def test_defaults(self) -> None:
        """Redirects are off and the default budget is used."""
        config = FetchConfig()

        assert config.follow_redirects is False
        assert config.timeout_seconds == 30.0
        assert config.backoff == RetryBudget()

    def test_unknown_key_rejected(self) -> None:
        """Typos in configuration are reported."""
        with pytest.raises(ValidationError):
            FetchConfig.model_validate({"user_agnet": "x"})

    def test_frozen(self) -> None:
        """Configuration cannot change after construction."""
        config = FetchConfig()

        with pytest.raises(ValidationError):
            config.user_agent = "other"  # type: ignore[misc]

    def test_from_yaml(self, tmp_path: Path) -> None:
        """Nested backoff settings load from YAML."""
        path = tmp_path / "fetch.yaml"
        path.write_text(
            "user_agent: fetcher/1\n"
            "timeout_seconds: 5\n"
            "backoff:\n"
            "  base_delay_seconds: 3\n"
            "  retry_exponent: 2\n",
            encoding="utf-8",
        )

        config = FetchConfig.from_yaml(path)

        assert config.user_agent == "fetcher/1"
        assert config.timeout_seconds == 5.0
        assert config.backoff.max_delay_seconds == 9

    def test_from_empty_yaml(self, tmp_path: Path) -> None:
        """An empty file gives the defaults."""
        path = tmp_path / "fetch.yaml"
        path.write_text("", encoding="utf-8")

        assert FetchConfig.from_yaml(path) == FetchConfig()

    def test_from_yaml_errors(self, tmp_path: Path) -> None:
        """Missing files and bad YAML raise."""
        with pytest.raises(FileNotFoundError):
            FetchConfig.from_yaml(tmp_path / "missing.yaml")

        bad = tmp_path / "bad.yaml"
        bad.write_text("backoff: [unclosed", encoding="utf-8")
        with pytest.raises(yaml.YAMLError):
            FetchConfig.from_yaml(bad)


class TestFetchResult:
    """Tests for FetchResult."""

    def test_not_modified(self) -> None:
        """A 304 result is not modified and has no body."""
        result = FetchResult(url="http://x/y", status_code=304)

        assert result.not_modified is True
        assert result.body is None
        assert result.last_modified == 0

    def test_ok_with_empty_body(self) -> None:
        """An empty body is kept as the empty string."""
        result = FetchResult(url="http://x/y", status_code=200, body="")

        assert result.not_modified is False
        assert result.body == ""

    def test_negative_marker_rejected(self) -> None:
        """Last-Modified markers cannot be negative."""
        with pytest.raises(ValidationError):
            FetchResult(url="http://x/y", status_code=200, last_modified=-1)


class TestTrustPolicy:
    """Tests for TrustPolicy."""

    def test_default_verifier(self) -> None:
        """The platform verifier is used unless one is supplied."""
        policy = TrustPolicy(ssl_context=ssl.create_default_context())

        assert policy.hostname_verifier is platform_hostname_verifier

    def test_custom_verifier(self) -> None:
        """A supplied verifier is kept."""

        def allow_all(hostname: str, session: object) -> bool:
            return True

        policy = TrustPolicy(
            ssl_context=ssl.create_default_context(),
            hostname_verifier=allow_all,  # type: ignore[arg-type]
        )

        assert policy.hostname_verifier is allow_all

    def test_missing_bundle_raises(self, tmp_path: Path) -> None:
        """A CA bundle that does not exist cannot build a policy."""
        with pytest.raises(OSError):
            TrustPolicy.from_ca_bundle(tmp_path / "missing.pem")


class TestCancellationToken:
    """Tests for CancellationToken."""

    def test_wait_elapses(self) -> None:
        """An uncancelled wait reports False."""
        assert CancellationToken().wait(0.01) is False

    def test_cancel_and_reset(self) -> None:
        """Cancellation is sticky until reset."""
        token = CancellationToken()
        token.cancel()

        assert token.is_cancelled() is True
        assert token.wait(10) is True

        token.reset()
        assert token.is_cancelled() is False
