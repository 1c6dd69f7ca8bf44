"""Constants for in-cluster bootstrap and auth resolution."""

# Environment variables set by the kubelet in every pod.
# See https://kubernetes.io/docs/reference/access-authn-authz/service-accounts-admin/
SERVICE_HOST_ENV = "KUBERNETES_SERVICE_HOST"
SERVICE_PORT_ENV = "KUBERNETES_SERVICE_PORT"

# Service-account material mounted into every pod
SERVICE_ACCOUNT_CA_FILE = "/var/run/secrets/kubernetes.io/serviceaccount/ca.crt"
SERVICE_ACCOUNT_TOKEN_FILE = "/var/run/secrets/kubernetes.io/serviceaccount/token"  # noqa: S105

SCHEME_HTTP = "http"
SCHEME_HTTPS = "https"
DEFAULT_HTTP_PORT = 80
DEFAULT_HTTPS_PORT = 443
