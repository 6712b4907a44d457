"""Startup failures for the gateway process.

Anything raised from here is fatal: the runtime logs the diagnostic and
exits without serving requests.
"""

from __future__ import annotations

from pathlib import Path

__all__ = ["BootstrapError", "ConfigError"]


class BootstrapError(Exception):
    """Raised when the gateway cannot start serving.

    Covers a database that fails to open, unusable TLS material, and a
    listener that cannot bind. There is no degraded mode.
    """

    @classmethod
    def database_unavailable(cls, directory: str, detail: str) -> BootstrapError:
        """Create error for a database directory that cannot be opened."""
        return cls(f"Failed to open database at {directory!r}: {detail}")

    @classmethod
    def missing_tls_file(cls, kind: str, path: Path) -> BootstrapError:
        """Create error for a TLS certificate or key file that is absent."""
        return cls(f"TLS {kind} file {str(path)!r} does not exist")

    @classmethod
    def listener_failed(cls, scheme: str, detail: str) -> BootstrapError:
        """Create error for a listener that failed to start."""
        return cls(f"Failed to start {scheme} service - {detail}")


class ConfigError(BootstrapError):
    """Raised when environment configuration is missing or malformed."""

    @classmethod
    def missing(cls, env_var: str) -> ConfigError:
        """Create error for a required environment variable that is unset.

        Parameters
        ----------
        env_var
            Name of the missing variable.

        Returns
        -------
        ConfigError
            Error naming the variable.

        """
        return cls(f"{env_var} environment variable is required")

    @classmethod
    def invalid(cls, env_var: str, raw: str, reason: str) -> ConfigError:
        """Create error for an environment variable with an unusable value.

        Parameters
        ----------
        env_var
            Name of the offending variable.
        raw
            The value that was read.
        reason
            Human-readable description of the constraint that failed.

        Returns
        -------
        ConfigError
            Error carrying the variable, the value, and the reason.

        """
        return cls(f"Invalid {env_var} value {raw!r}: {reason}")

    @classmethod
    def unreadable_key(cls, env_var: str, path: str, detail: str) -> ConfigError:
        """Create error for a key file that cannot be read."""
        return cls(f"Cannot read key file {path!r} from {env_var}: {detail}")
