"""
Message templates.

Templates use {{name}} placeholders. Unknown placeholders are left in the
text so a missing variable is visible in the delivered message.
"""

import re
from datetime import date
from typing import Any, Mapping


_PLACEHOLDER = re.compile(r"\{\{\s*(\w+)\s*\}\}")

DEFAULT_INVOICE_REMINDER_TEMPLATE = """Halo {{customerName}},

Tagihan internet Anda akan jatuh tempo.

*Detail Invoice:*
Username: {{username}}
No. Invoice: {{invoiceNumber}}
Jumlah: {{amount}}
Jatuh Tempo: {{dueDate}}
Sisa Waktu: {{daysRemaining}} hari

Link Pembayaran:
{{paymentLink}}

Terima kasih,
{{companyName}}
{{companyPhone}}"""


def render_template(template: str, variables: Mapping[str, Any]) -> str:
    """Replace every {{name}} with str(variables[name]); None renders empty."""

    def _substitute(match: re.Match) -> str:
        key = match.group(1)
        if key not in variables:
            return match.group(0)
        value = variables[key]
        return "" if value is None else str(value)

    return _PLACEHOLDER.sub(_substitute, template)


def format_rupiah(amount: int) -> str:
    """1500000 -> 'Rp 1.500.000'"""
    return "Rp " + f"{amount:,}".replace(",", ".")


def format_due_date(value: date) -> str:
    return value.strftime("%d/%m/%Y")
