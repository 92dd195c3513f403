"""TLS trust policy and hostname verification for secure connections."""

import ssl
from collections.abc import Callable
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field


# A TLS session as exposed by the transport: the wrapped socket or SSL object.
SSLSession = ssl.SSLSocket | ssl.SSLObject

HostnameVerifier = Callable[[str, SSLSession | None], bool]


def platform_hostname_verifier(hostname: str, session: SSLSession | None) -> bool:
    """Default verifier: accept sessions the TLS layer verified for ``hostname``.

    The ``ssl`` module checks the certificate against ``server_hostname`` during
    the handshake when ``check_hostname`` is set, so a session is accepted only
    if that check was active and was run for the same host.

    Args:
        hostname: Host the session must be valid for.
        session: Established TLS session, or None if none is available.

    Returns:
        True if the session was hostname-verified for ``hostname``.
    """
    if session is None or session.server_hostname is None:
        return False
    if not session.context.check_hostname:
        return False
    return session.server_hostname.lower() == hostname.lower()


def pin_hostname_verifier(host: str, verifier: HostnameVerifier) -> HostnameVerifier:
    """Wrap ``verifier`` so it is always evaluated against ``host``.

    The hostname reported by the transport (which may belong to a proxy or a
    redirect target) is ignored.

    Args:
        host: The originally requested endpoint host.
        verifier: Verifier to delegate to.

    Returns:
        A verifier bound to ``host``.
    """

    def verify(hostname: str, session: SSLSession | None) -> bool:  # noqa: ARG001
        return verifier(host, session)

    return verify


class TrustPolicy(BaseModel):
    """Certificate and hostname verification installed on secure connections.

    Both mechanisms are always installed together. The policy is built by the
    caller; the fetch layer never provisions certificates itself.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    ssl_context: ssl.SSLContext = Field(description="Certificate verification")
    hostname_verifier: HostnameVerifier = Field(
        default=platform_hostname_verifier,
        description="Hostname predicate wrapped and pinned per endpoint",
    )

    @classmethod
    def from_ca_bundle(cls, ca_bundle: Path | str) -> "TrustPolicy":
        """Build a policy trusting the certificates in a PEM bundle.

        Args:
            ca_bundle: Path to a PEM file of trusted CA certificates.

        Returns:
            TrustPolicy using the platform hostname verifier.
        """
        context = ssl.create_default_context(cafile=str(ca_bundle))
        return cls(ssl_context=context)
