"""Currency formatting for notification messages. The ledger is single-currency (USD)."""


CURRENCY_SYMBOL = "$"


def format_currency(amount_cents: int) -> str:
    """
    Format an amount in cents as a currency string with symbol.

    Args:
        amount_cents: Amount in cents (e.g., 1234 for $12.34)

    Returns:
        Formatted string with symbol (e.g., "$12.34", "-$12.34")
    """
    sign = "-" if amount_cents < 0 else ""
    dollars, cents = divmod(abs(amount_cents), 100)
    return f"{sign}{CURRENCY_SYMBOL}{dollars:,}.{cents:02d}"
