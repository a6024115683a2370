"""
Static table of known Bitcoin entities (exchange cold/hot wallets).

Publicly labelled addresses only. A production deployment would back this
with a labelled-address database; the lookup interface stays the same.
"""

from __future__ import annotations

from collections.abc import Mapping

from backend_whalewatch.gateway.models import ENTITY_EXCHANGE, KnownEntity

KNOWN_ENTITIES: dict[str, KnownEntity] = {
    # Binance
    "34xp4vRoCGJym3xR7yCVPFHoCNxv4Twseo": KnownEntity("Binance", ENTITY_EXCHANGE),
    "bc1qm34lsc65zpw79lxes69zkqmk6ee3ewf0j77s3h": KnownEntity("Binance", ENTITY_EXCHANGE),
    "3LYJfcfHPXYJreMsASk2jkn69LWEYKzexb": KnownEntity("Binance", ENTITY_EXCHANGE),
    "bc1qgdjqv0av3q56jvd82tkdjpy7gdp9ut8tlqmgrpmv24sq90ecnvqqjwvw97": KnownEntity("Binance", ENTITY_EXCHANGE),
    # Coinbase
    "3D2oetdNuZUqQHPJmcMDDHYoqkyNVsFk9r": KnownEntity("Coinbase", ENTITY_EXCHANGE),
    "3Cbq7aT1tY8kMxWLbitaG7yT6bPbKChq64": KnownEntity("Coinbase", ENTITY_EXCHANGE),
    # Kraken
    "3FupZp77ySr7jwoLYEJ9mwzJpvoNBXsBnE": KnownEntity("Kraken", ENTITY_EXCHANGE),
    "3ANaBZ6odMrzdg9xifgRNxAUFUxnReesws": KnownEntity("Kraken", ENTITY_EXCHANGE),
    "bc1qj89046x7zv6pm4n00qgqp505nvljnfp6xfznyw": KnownEntity("Kraken", ENTITY_EXCHANGE),
    # Huobi
    "3QJmV3qfvL9SuYo34YihAf3sRCW3qSinyC": KnownEntity("Huobi", ENTITY_EXCHANGE),
    # OKX
    "1NDyJtNTjmwk5xPNhjgAMu4HDHigtobu1s": KnownEntity("OKX", ENTITY_EXCHANGE),
    # Bitstamp
    "3Nxwenay9Z8Lc9JBiywExpnEFiLp6Afp8v": KnownEntity("Bitstamp", ENTITY_EXCHANGE),
}


def lookup_entity(
    address: str | None,
    table: Mapping[str, KnownEntity] | None = None,
) -> KnownEntity | None:
    """Return the known entity for address, or None."""
    if not address:
        return None
    return (KNOWN_ENTITIES if table is None else table).get(address)


def is_exchange(address: str | None, table: Mapping[str, KnownEntity] | None = None) -> bool:
    entity = lookup_entity(address, table)
    return entity is not None and entity.category == ENTITY_EXCHANGE
