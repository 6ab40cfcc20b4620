"""
Merchant Resolver for the PriceWatch comparison service.
Maps free-text seller names ("Amazon.fr Marketplace", "Back Market") to a
canonical merchant key (a domain) using an ordered alias table.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Tuple

from pricewatch.utils.logger import LayerLogger


class MerchantPolicy(str, Enum):
    """What to do with sellers missing from the alias table."""
    STRICT = "strict"          # drop the offer
    PERMISSIVE = "permissive"  # keep it under a synthetic key built from its name


@dataclass(frozen=True)
class MerchantAlias:
    """One trigger substring and the canonical key it maps to."""
    trigger: str
    key: str


# Order is priority: first matching trigger wins.
DEFAULT_MERCHANT_ALIASES: Tuple[Tuple[str, str], ...] = (
    ("amazon", "amazon.fr"),
    ("fnac", "fnac.com"),
    ("cdiscount", "cdiscount.com"),
    ("darty", "darty.com"),
    ("boulanger", "boulanger.com"),
    ("ldlc", "ldlc.com"),
    ("materiel", "materiel.net"),
    ("back market", "backmarket.fr"),
    ("backmarket", "backmarket.fr"),
    ("rakuten", "rakuten.fr"),
    ("auchan", "auchan.fr"),
    ("carrefour", "carrefour.fr"),
    ("electro", "electrodepot.fr"),
)


class MerchantAliasTable:
    """
    Read-only, ordered (trigger -> canonical key) table.

    Built once per process and shared by every request.
    """

    def __init__(self, aliases: Iterable[Tuple[str, str]] = DEFAULT_MERCHANT_ALIASES):
        self._aliases: Tuple[MerchantAlias, ...] = tuple(
            MerchantAlias(trigger=trigger.lower(), key=key.lower())
            for trigger, key in aliases
        )
        if not self._aliases:
            raise ValueError("Merchant alias table cannot be empty")

    @property
    def aliases(self) -> Tuple[MerchantAlias, ...]:
        return self._aliases

    @property
    def domain_fragments(self) -> Tuple[str, ...]:
        """Distinct canonical keys in table order, used to spot merchant URLs."""
        seen = []
        for alias in self._aliases:
            if alias.key not in seen:
                seen.append(alias.key)
        return tuple(seen)

    def lookup(self, name: str) -> Optional[str]:
        name_lower = name.lower()
        for alias in self._aliases:
            if alias.trigger in name_lower:
                return alias.key
        return None

    def __len__(self) -> int:
        return len(self._aliases)


class MerchantResolver:
    """
    Resolves seller names to merchant keys under a configured policy.
    """

    def __init__(
        self,
        table: Optional[MerchantAliasTable] = None,
        policy: MerchantPolicy = MerchantPolicy.STRICT,
    ):
        self.table = table or MerchantAliasTable()
        self.policy = MerchantPolicy(policy)
        self.logger = LayerLogger("merchant_resolver")

    def resolve(self, merchant_name_raw: Optional[str]) -> Optional[str]:
        """Return the canonical key for a known merchant, else None."""
        if not merchant_name_raw:
            return None
        return self.table.lookup(merchant_name_raw)

    def resolve_key(self, merchant_name_raw: Optional[str]) -> Optional[str]:
        """
        Resolve a grouping key according to the policy.

        Strict: unknown merchants give None. Permissive: unknown merchants
        are grouped under their own lowercased name. A missing name is
        always None since the key must never be empty.
        """
        key = self.resolve(merchant_name_raw)
        if key is not None:
            return key

        if self.policy == MerchantPolicy.PERMISSIVE and merchant_name_raw and merchant_name_raw.strip():
            synthetic_key = merchant_name_raw.strip().lower()
            self.logger.log_decision(
                decision="synthetic_merchant_key",
                reason="Unknown merchant kept in permissive mode",
                merchant=merchant_name_raw,
                merchant_key=synthetic_key,
            )
            return synthetic_key

        return None
