"""
Tenant account configuration.

Each tenant ("account") has its own commerce credentials, notifier key,
template ids and URL templates. Accounts are loaded once from a YAML file at
process start and never mutated afterwards.

Example file:

    botspace:
      url: https://public-api.botspace.ai
      endpoint: /v1/message/template
    accounts:
      ACME:
        shopify:
          shop: acme-store
          access_token: shpat_xxx
        botspace:
          api_key: bs_xxx
          templates:
            inTransit: tmpl-in-transit
            outForDelivery: tmpl-ofd
            delivered: tmpl-delivered
        tracking_url_template: https://acme.shipway.in/track/{awb}
        product_url_prefix: https://acme.example/products/

Design decisions:
- YAML parsed with yaml.safe_load, validated with Pydantic
- Lookups are case-insensitive on the account code
- An unknown account code is a normal "not configured" answer (None)
"""

import logging
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger("config")

DEFAULT_API_VERSION = "2025-07"
DEFAULT_OUT_FOR_DELIVERY_TAG = "AAA_OUT_FOR_DELIVERY"
FALLBACK_TRACKING_URL = "https://tracking.example.com/track/"
FALLBACK_PRODUCT_URL_PREFIX = "https://www.thestrikerstore.com/products/"

# Template keys in the botspace.templates mapping
TEMPLATE_KEYS = (
    "inTransit",
    "outForDelivery",
    "delivered",
    "orderCreated",
    "shopifyFulfillment",
    "abandonedCart",
)


# =============================================================================
# Models
# =============================================================================

class ShopifyAccount(BaseModel):
    """Commerce platform credentials for one tenant."""
    shop: str = Field(..., description="Shop subdomain, with or without .myshopify.com")
    access_token: str = Field(..., description="Admin API access token")
    api_version: str = Field(default=DEFAULT_API_VERSION)

    model_config = ConfigDict(frozen=True)

    @property
    def shop_domain(self) -> str:
        """Bare shop name, stripped of scheme and .myshopify.com."""
        shop = self.shop.strip().replace("https://", "").replace("http://", "")
        return shop.replace(".myshopify.com", "").strip("/")

    @property
    def rest_base_url(self) -> str:
        return f"https://{self.shop_domain}.myshopify.com/admin/api/{self.api_version}"

    @property
    def graphql_url(self) -> str:
        return f"{self.rest_base_url}/graphql.json"


class BotspaceAccount(BaseModel):
    """Notifier settings for one tenant. Missing url/endpoint fall back to the global ones."""
    url: Optional[str] = Field(default=None)
    endpoint: Optional[str] = Field(default=None)
    api_key: Optional[str] = Field(default=None)
    templates: dict[str, str] = Field(default_factory=dict, description="Template id by key")

    model_config = ConfigDict(frozen=True)

    def template_id(self, key: str) -> Optional[str]:
        template = self.templates.get(key)
        return template or None


class BotspaceDefaults(BaseModel):
    """Process-wide notifier fallbacks."""
    url: Optional[str] = None
    endpoint: Optional[str] = None
    api_key: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class AccountConfig(BaseModel):
    """Everything the engine knows about one tenant."""
    code: str
    shopify: Optional[ShopifyAccount] = None
    botspace: BotspaceAccount = Field(default_factory=BotspaceAccount)
    tracking_url_template: Optional[str] = Field(default=None, description="URL with an {awb} placeholder")
    product_url_prefix: Optional[str] = Field(default=None)
    out_for_delivery_tag: str = Field(default=DEFAULT_OUT_FOR_DELIVERY_TAG)

    model_config = ConfigDict(frozen=True)

    def tracking_url(self, awb: Optional[str]) -> Optional[str]:
        """Tracking link for an AWB, or None when there is no AWB."""
        if not awb:
            return None
        if self.tracking_url_template:
            return self.tracking_url_template.replace("{awb}", awb)
        return FALLBACK_TRACKING_URL + awb

    def product_url(self, handle: Optional[str]) -> str:
        """Review link for a product handle; the bare prefix when there is no handle."""
        prefix = self.product_url_prefix or FALLBACK_PRODUCT_URL_PREFIX
        if not handle:
            return prefix
        return f"{prefix}{handle}#judgeme"


# =============================================================================
# Registry
# =============================================================================

class AccountRegistry:
    """
    Immutable lookup of tenant accounts.

    Passed explicitly to the components that need it; there is no global
    instance.
    """

    def __init__(
        self,
        accounts: Optional[Mapping[str, AccountConfig]] = None,
        botspace_defaults: Optional[BotspaceDefaults] = None,
    ):
        normalized = {code.strip().upper(): account for code, account in (accounts or {}).items()}
        self._accounts = MappingProxyType(normalized)
        self.botspace_defaults = botspace_defaults or BotspaceDefaults()

    def get(self, account_code: Optional[str]) -> Optional[AccountConfig]:
        if not account_code:
            return None
        return self._accounts.get(account_code.strip().upper())

    def codes(self) -> list[str]:
        return sorted(self._accounts)

    def code_for_shop(self, shop_domain: Optional[str]) -> Optional[str]:
        """
        Account code for a shop domain such as "shop-acme.myshopify.com".

        A configured shop with the same name wins. Otherwise the last
        hyphen-separated part of the shop name is used, then the whole name.
        """
        if not shop_domain:
            return None
        shop_name = (
            shop_domain.strip()
            .replace("https://", "")
            .replace("http://", "")
            .replace(".myshopify.com", "")
            .strip("/")
        )
        if not shop_name:
            return None

        for code, account in self._accounts.items():
            if account.shopify and account.shopify.shop_domain.lower() == shop_name.lower():
                return code

        if "-" in shop_name:
            return shop_name.split("-")[-1].upper()
        return shop_name.upper()

    def with_botspace_fallback(self, url: Optional[str], endpoint: Optional[str]) -> "AccountRegistry":
        """Copy of this registry whose missing global url/endpoint are filled in."""
        update = {}
        if url and not self.botspace_defaults.url:
            update["url"] = url
        if endpoint and not self.botspace_defaults.endpoint:
            update["endpoint"] = endpoint
        if not update:
            return self
        return AccountRegistry(self._accounts, self.botspace_defaults.model_copy(update=update))

    def __contains__(self, account_code: object) -> bool:
        return isinstance(account_code, str) and self.get(account_code) is not None

    def __len__(self) -> int:
        return len(self._accounts)

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> "AccountRegistry":
        """
        Build a registry from parsed YAML.

        Raises:
            ValueError: if the structure does not validate.
        """
        data = data or {}
        if not isinstance(data, dict):
            raise ValueError("Account config must be a mapping")

        try:
            defaults = BotspaceDefaults(**(data.get("botspace") or {}))
            accounts = {}
            for code, body in (data.get("accounts") or {}).items():
                body = dict(body or {})
                body.setdefault("code", str(code).upper())
                accounts[str(code)] = AccountConfig(**body)
        except ValidationError as e:
            raise ValueError(f"Invalid account config: {e}") from e

        return cls(accounts, botspace_defaults=defaults)


def load_accounts(path: Union[str, Path, None]) -> AccountRegistry:
    """
    Load tenant accounts from a YAML file.

    Args:
        path: YAML file path. None yields an empty registry.

    Raises:
        FileNotFoundError: if the path is given but missing.
        ValueError: if the file is not valid account config.
    """
    if path is None:
        logger.warning("No account config file set; every account code will be unknown")
        return AccountRegistry()

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Missing account config: {path}")

    with open(path, "r") as f:
        data = yaml.safe_load(f)

    registry = AccountRegistry.from_dict(data)
    logger.info(f"Loaded {len(registry)} account(s) from {path}: {', '.join(registry.codes())}")
    return registry
