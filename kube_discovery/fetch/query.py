"""Query string composition for API list requests."""

from collections.abc import Iterable
from urllib.parse import quote_plus

from kube_discovery.config.models import Role, Selector


NAMESPACE_FIELD = "metadata.namespace"


def join_selectors(
    role: Role,
    namespaces: Iterable[str],
    selectors: Iterable[Selector],
) -> str:
    """Build the query string restricting a list request.

    Namespace restrictions become ``metadata.namespace=<ns>`` field
    selectors. Only selectors configured for ``role`` are applied.

    Args:
        role: Role being requested.
        namespaces: Namespaces to restrict to.
        selectors: Configured selectors for all roles.

    Returns:
        ``labelSelector=...&fieldSelector=...`` with empty parts omitted,
        or an empty string.
    """
    label_selectors: list[str] = []
    field_selectors = [f"{NAMESPACE_FIELD}={ns}" for ns in namespaces]

    for selector in selectors:
        if selector.role != role:
            continue
        if selector.label:
            label_selectors.append(selector.label)
        if selector.field:
            field_selectors.append(selector.field)

    args: list[str] = []
    if label_selectors:
        args.append("labelSelector=" + quote_plus(",".join(label_selectors), safe=""))
    if field_selectors:
        args.append("fieldSelector=" + quote_plus(",".join(field_selectors), safe=""))
    return "&".join(args)
