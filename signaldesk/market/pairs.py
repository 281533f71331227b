"""Pair label normalisation and Kraken market resolution — pure functions.

Kraken names bitcoin ``XBT``; users type ``BTC``.  Labels are compared
after upper-casing, turning ``-`` into ``/`` and aliasing BTC to XBT.
"""

import re
from typing import Optional

from signaldesk.market.models import ResolvedPair

_XBT_WORD = re.compile(r"\bXBT\b")


def normalize_pair(label: str) -> str:
    """``" eth-usd "`` → ``"ETH/USD"``."""
    return label.strip().replace("-", "/").upper()


def match_key(label: str) -> str:
    """Normalised label with BTC aliased to XBT on either side."""
    normalized = normalize_pair(label)
    parts = normalized.split("/")
    if len(parts) != 2:
        return normalized
    base, quote = ("XBT" if p == "BTC" else p for p in parts)
    return f"{base}/{quote}"


def compressed_match_key(label: str) -> str:
    return match_key(label).replace("/", "")


def display_name(label: str) -> str:
    return _XBT_WORD.sub("BTC", label)


def resolve_pair(pairs: dict[str, dict], user_input: str) -> Optional[ResolvedPair]:
    """Find the Kraken market for *user_input* in an AssetPairs result.

    Matches ``wsname`` first, then ``altname``, either separated
    (``"XBT/USD"``) or compressed (``"XBTUSD"``).

    Returns:
        ``ResolvedPair`` for the first match in Kraken's ordering, else ``None``.
    """
    key = match_key(user_input)
    key_compressed = compressed_match_key(user_input)

    for pair_key, info in pairs.items():
        wsname = info.get("wsname")
        if isinstance(wsname, str) and match_key(wsname) == key:
            return ResolvedPair(
                pair_key=pair_key, wsname=wsname, display_pair=display_name(wsname)
            )

        altname = info.get("altname")
        if not isinstance(altname, str):
            continue
        if "/" in altname or "-" in altname:
            if match_key(altname) == key:
                canonical = normalize_pair(altname)
                return ResolvedPair(
                    pair_key=pair_key,
                    wsname=wsname if isinstance(wsname, str) else canonical,
                    display_pair=display_name(canonical),
                )
        elif compressed_match_key(altname) == key_compressed:
            canonical = wsname if isinstance(wsname, str) else altname
            return ResolvedPair(
                pair_key=pair_key, wsname=canonical, display_pair=display_name(canonical)
            )

    return None
