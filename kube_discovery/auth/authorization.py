"""Authorization header and TLS context construction."""

import base64
import ssl
from pathlib import Path

from kube_discovery.config.models import BasicAuth, TLSConfig


class EmptySecretFileError(ValueError):
    """Raised when a credential file exists but holds no data."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"file {path!r} is empty")


def resolve_path(base_dir: str, path: str) -> str:
    """Resolve a credential file path against the config directory.

    Args:
        base_dir: Directory of the config the path came from.
        path: Absolute or relative file path.

    Returns:
        Absolute paths unchanged, relative ones joined with base_dir.
    """
    if not path or Path(path).is_absolute():
        return path
    return str(Path(base_dir) / path)


def read_secret_file(path: str) -> str:
    """Read a token or password file.

    Args:
        path: File to read.

    Returns:
        File contents with surrounding whitespace removed.

    Raises:
        OSError: If the file cannot be read.
        EmptySecretFileError: If the file is empty.
    """
    value = Path(path).read_text(encoding="utf-8").strip()
    if not value:
        raise EmptySecretFileError(path)
    return value


def basic_authorization(username: str, password: str) -> str:
    """Build a Basic authorization header value."""
    token = base64.b64encode(f"{username}:{password}".encode()).decode("ascii")
    return f"Basic {token}"


def bearer_authorization(token: str) -> str:
    """Build a Bearer authorization header value."""
    return f"Bearer {token}"


def build_authorization(
    base_dir: str,
    basic_auth: BasicAuth | None = None,
    bearer_token: str | None = None,
    bearer_token_file: str | None = None,
) -> str | None:
    """Build the Authorization header value from auth settings.

    Files are read once, at call time.

    Args:
        base_dir: Directory relative file paths resolve against.
        basic_auth: Basic auth credentials.
        bearer_token: Literal bearer token.
        bearer_token_file: Path of a file holding the bearer token.

    Returns:
        Header value, or None when no auth is configured.

    Raises:
        OSError: If a credential file cannot be read.
        EmptySecretFileError: If a credential file is empty.
    """
    if basic_auth is not None:
        password = basic_auth.password or ""
        if basic_auth.password_file:
            password = read_secret_file(
                resolve_path(base_dir, basic_auth.password_file)
            )
        return basic_authorization(basic_auth.username, password)

    if bearer_token_file:
        return bearer_authorization(
            read_secret_file(resolve_path(base_dir, bearer_token_file))
        )

    if bearer_token:
        return bearer_authorization(bearer_token)

    return None


def build_ssl_context(tls_config: TLSConfig | None, base_dir: str) -> ssl.SSLContext:
    """Build an SSL context from TLS settings.

    A configured CA file replaces the system trust store.

    Args:
        tls_config: TLS settings, or None for system defaults.
        base_dir: Directory relative file paths resolve against.

    Returns:
        Client-side SSL context.

    Raises:
        OSError: If a certificate or key file cannot be read.
        ssl.SSLError: If certificate material cannot be parsed.
    """
    if tls_config is None:
        return ssl.create_default_context()

    ca_file = resolve_path(base_dir, tls_config.ca_file) if tls_config.ca_file else None
    context = ssl.create_default_context(cafile=ca_file)

    if tls_config.cert_file and tls_config.key_file:
        context.load_cert_chain(
            certfile=resolve_path(base_dir, tls_config.cert_file),
            keyfile=resolve_path(base_dir, tls_config.key_file),
        )

    if tls_config.insecure_skip_verify:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE

    return context
