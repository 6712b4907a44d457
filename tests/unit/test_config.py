"""Unit tests for ServerConfig."""

from __future__ import annotations

import typing as typ

import pytest

from tiedot_gateway.config import AuthMode, ServerConfig
from tiedot_gateway.errors import ConfigError

if typ.TYPE_CHECKING:
    from pathlib import Path

_ENV_VARS = (
    "TIEDOT_DIR",
    "TIEDOT_PORT",
    "TIEDOT_HOST",
    "TIEDOT_TLS_CERT",
    "TIEDOT_TLS_KEY",
    "TIEDOT_JWT_PUBLIC_KEY_FILE",
    "TIEDOT_JWT_PRIVATE_KEY_FILE",
    "TIEDOT_JWT_TTL_SECONDS",
    "TIEDOT_LOG_LEVEL",
)


@pytest.fixture
def env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    """Clear gateway variables and set only the database directory."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("TIEDOT_DIR", "/tmp/d1")
    return monkeypatch


class TestServerConfig:
    """Tests for the ServerConfig dataclass."""

    def test_defaults(self) -> None:
        """Defaults listen on all interfaces with TLS and auth off."""
        config = ServerConfig(directory="/tmp/d1")
        assert config.port == 8080, "default port should be 8080"
        assert config.host == "0.0.0.0", "default host should be all interfaces"  # noqa: S104
        assert not config.tls_enabled, "TLS should be off"
        assert config.auth_mode is AuthMode.CORS_OPEN, "default mode is CORS-open"

    @pytest.mark.parametrize(
        ("tls_cert", "private_key", "tls_enabled", "mode"),
        [
            pytest.param("", "", False, AuthMode.CORS_OPEN, id="plain-cors"),
            pytest.param("c.pem", "", True, AuthMode.CORS_OPEN, id="tls-cors"),
            pytest.param("", "KEY", False, AuthMode.AUTH_GATED, id="plain-auth"),
            pytest.param("c.pem", "KEY", True, AuthMode.AUTH_GATED, id="tls-auth"),
        ],
    )
    def test_tls_and_auth_are_independent(
        self,
        tls_cert: str,
        private_key: str,
        tls_enabled: bool,  # noqa: FBT001
        mode: AuthMode,
    ) -> None:
        """Each switch depends only on its own setting."""
        config = ServerConfig(
            directory="/tmp/d1",
            tls_cert=tls_cert,
            tls_key="k.pem" if tls_cert else "",
            jwt_private_key=private_key,
        )
        assert config.tls_enabled is tls_enabled, "wrong TLS switch"
        assert config.auth_mode is mode, "wrong auth mode"

    def test_public_key_alone_keeps_cors_open(self) -> None:
        """Only a private key selects auth-gated mode."""
        config = ServerConfig(directory="/tmp/d1", jwt_public_key="PUB")
        assert config.auth_mode is AuthMode.CORS_OPEN, "public key alone is not auth"

    def test_private_key_hidden_from_repr(self) -> None:
        """The private key never appears in repr()."""
        config = ServerConfig(directory="/tmp/d1", jwt_private_key="SECRET")
        assert "SECRET" not in repr(config), "private key leaked into repr"


class TestFromEnv:
    """Tests for ServerConfig.from_env."""

    def test_minimal(self, env: pytest.MonkeyPatch) -> None:
        """Only TIEDOT_DIR is required."""
        config = ServerConfig.from_env()
        assert config == ServerConfig(directory="/tmp/d1"), "unexpected defaults"

    def test_missing_directory(self, env: pytest.MonkeyPatch) -> None:
        """TIEDOT_DIR must be set."""
        env.delenv("TIEDOT_DIR")
        with pytest.raises(ConfigError, match="TIEDOT_DIR"):
            ServerConfig.from_env()

    @pytest.mark.parametrize("raw", ["abc", "0", "65536", "-1"])
    def test_invalid_port(self, env: pytest.MonkeyPatch, raw: str) -> None:
        """Ports outside 1-65535 are rejected."""
        env.setenv("TIEDOT_PORT", raw)
        with pytest.raises(ConfigError, match="TIEDOT_PORT"):
            ServerConfig.from_env()

    def test_port_and_host(self, env: pytest.MonkeyPatch) -> None:
        """Port and host are read from the environment."""
        env.setenv("TIEDOT_PORT", "9090")
        env.setenv("TIEDOT_HOST", "127.0.0.1")
        config = ServerConfig.from_env()
        assert (config.port, config.host) == (9090, "127.0.0.1"), "wrong listener"

    def test_tls_needs_key(self, env: pytest.MonkeyPatch) -> None:
        """A certificate without a key is a configuration error."""
        env.setenv("TIEDOT_TLS_CERT", "/etc/cert.pem")
        with pytest.raises(ConfigError, match="TIEDOT_TLS_KEY"):
            ServerConfig.from_env()

    def test_tls_paths(self, env: pytest.MonkeyPatch) -> None:
        """TLS paths enable TLS without touching the auth mode."""
        env.setenv("TIEDOT_TLS_CERT", "/etc/cert.pem")
        env.setenv("TIEDOT_TLS_KEY", "/etc/key.pem")
        config = ServerConfig.from_env()
        assert config.tls_enabled, "TLS should be on"
        assert config.auth_mode is AuthMode.CORS_OPEN, "mode should be unaffected"

    def test_reads_key_files(self, env: pytest.MonkeyPatch, tmp_path: Path) -> None:
        """Key files are read into the configuration."""
        private = tmp_path / "jwt.key"
        public = tmp_path / "jwt.pub"
        private.write_text("PRIVATE PEM")
        public.write_text("PUBLIC PEM")
        env.setenv("TIEDOT_JWT_PRIVATE_KEY_FILE", str(private))
        env.setenv("TIEDOT_JWT_PUBLIC_KEY_FILE", str(public))
        config = ServerConfig.from_env()
        assert config.jwt_private_key == "PRIVATE PEM", "private key not read"
        assert config.jwt_public_key == "PUBLIC PEM", "public key not read"
        assert config.auth_mode is AuthMode.AUTH_GATED, "mode should be auth-gated"

    def test_unreadable_key_file(self, env: pytest.MonkeyPatch, tmp_path: Path) -> None:
        """A key file that cannot be read is a configuration error."""
        env.setenv("TIEDOT_JWT_PRIVATE_KEY_FILE", str(tmp_path / "missing.key"))
        with pytest.raises(ConfigError, match="Cannot read key file"):
            ServerConfig.from_env()

    @pytest.mark.parametrize("raw", ["soon", "0"])
    def test_invalid_ttl(self, env: pytest.MonkeyPatch, raw: str) -> None:
        """The credential lifetime must be a positive integer."""
        env.setenv("TIEDOT_JWT_TTL_SECONDS", raw)
        with pytest.raises(ConfigError, match="TIEDOT_JWT_TTL_SECONDS"):
            ServerConfig.from_env()

    def test_ttl_and_log_level(self, env: pytest.MonkeyPatch) -> None:
        """TTL and log level pass through."""
        env.setenv("TIEDOT_JWT_TTL_SECONDS", "60")
        env.setenv("TIEDOT_LOG_LEVEL", "debug")
        config = ServerConfig.from_env()
        assert config.jwt_ttl_seconds == 60, "ttl not read"
        assert config.log_level == "debug", "log level should be kept raw"
