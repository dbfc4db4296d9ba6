"""udev rule synthesis for mapped sound cards.

Each record carries up to three rules of increasing specificity:

1. vendor/product match only (always present; cannot separate identical devices)
2. plus ``KERNELS`` constrained to the physical port token
3. plus ``ENV{ID_PATH}`` constrained to the controller-qualified platform path

All three assign the same ``ATTR{id}`` and symlink, so whichever matches on a
given distribution produces the same result.
"""

from __future__ import annotations

import re

from soundmap.core.model import Identity, RuleRecord

DEFAULT_NAMESPACE = "sound/by-id"

_ASSIGNED_ID_RE = re.compile(r'ATTR\{id\}="([^"]*)"')


def _rule_line(
    vendor_id: str,
    product_id: str,
    friendly_name: str,
    namespace: str,
    *,
    kernels: str | None = None,
    id_path: str | None = None,
) -> str:
    parts = ['SUBSYSTEM=="sound"']
    if kernels:
        parts.append(f'KERNELS=="{kernels}"')
    if id_path:
        parts.append(f'ENV{{ID_PATH}}=="{id_path}"')
    parts.extend(
        [
            f'ATTRS{{idVendor}}=="{vendor_id}"',
            f'ATTRS{{idProduct}}=="{product_id}"',
            f'SYMLINK+="{namespace}/{friendly_name}"',
            f'ATTR{{id}}="{friendly_name}"',
        ]
    )
    return ", ".join(parts)


def _comment(card_label: str | None, friendly_name: str, identity: Identity | None) -> str:
    label = " ".join((card_label or friendly_name).split())
    if identity is None:
        return f"# USB Sound Card: {label}"
    return f"# USB Sound Card: {label} (identity {identity.value})"


def synthesize(
    vendor_id: str,
    product_id: str,
    friendly_name: str,
    identity: Identity | None,
    platform_path: str | None,
    card_label: str | None,
    *,
    namespace: str = DEFAULT_NAMESPACE,
) -> RuleRecord:
    """Build the rule record for one device.

    Ids and the friendly name are expected to be validated already. The port
    rule is omitted for synthetic (low-confidence) tokens, which name no
    real kernel device.
    """
    vendor_id = vendor_id.lower()
    product_id = product_id.lower()

    port_rule = None
    if identity is not None and not identity.low_confidence:
        port_rule = _rule_line(
            vendor_id,
            product_id,
            friendly_name,
            namespace,
            kernels=identity.port_token,
        )

    platform_rule = None
    if platform_path:
        platform_rule = _rule_line(
            vendor_id,
            product_id,
            friendly_name,
            namespace,
            id_path=platform_path,
        )

    return RuleRecord(
        comment=_comment(card_label, friendly_name, identity),
        basic_rule=_rule_line(vendor_id, product_id, friendly_name, namespace),
        port_rule=port_rule,
        platform_rule=platform_rule,
    )


def assigned_names(text: str) -> list[str]:
    """Friendly names assigned by rule lines in ``text``, in file order."""
    names: list[str] = []
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        match = _ASSIGNED_ID_RE.search(stripped)
        if match:
            names.append(match.group(1))
    return names
