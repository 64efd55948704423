"""Plan definitions: pricing tiers, capacity limits and feature flags.

This module is the only place plan limits are declared. Capacity checks,
usage reports and the public ``/billing/plans`` endpoint all read ``PLANS``.
"""

from dataclasses import dataclass
from decimal import Decimal

PLAN_CATALOG_VERSION = "2024.1"


@dataclass(frozen=True)
class Limited:
    """A finite cap. ``Limited(0)`` genuinely allows nothing."""

    value: int

    def allows(self, count: int) -> bool:
        return count < self.value

    @property
    def max_allowed(self) -> int | None:
        return self.value


@dataclass(frozen=True)
class Unlimited:
    """No cap."""

    def allows(self, count: int) -> bool:
        return True

    @property
    def max_allowed(self) -> int | None:
        return None


UNLIMITED = Unlimited()

Limit = Limited | Unlimited


def from_legacy_limit(value: int) -> Limit:
    """Convert the legacy integer encoding where ``0`` meant unlimited."""
    if value < 0:
        raise ValueError(f"Limit cannot be negative: {value}")
    return UNLIMITED if value == 0 else Limited(value)


FEATURE_FLAGS = frozenset(
    {
        "basic_ads",
        "featured_ads",
        "premium_ads",
        "priority_support",
        "support_24_7",
        "email_support",
        "phone_support",
        "whatsapp_support",
        "basic_stats",
        "advanced_stats",
        "complete_stats",
        "custom_reports",
        "advanced_reports",
        "admin_panel",
        "api_access",
        "dedicated_consulting",
    }
)


@dataclass(frozen=True)
class PlanConfig:
    """Capacity limits and feature flags for a plan."""

    name: str
    display_name: str
    price_monthly: Decimal  # BRL
    max_vehicles: Limit
    max_featured_vehicles: Limited  # featured slots are always finite
    max_photos_per_vehicle: Limited
    storage_limit_mb: Limited
    api_calls_per_month: Limit
    features: frozenset[str]


_BASIC_FEATURES = frozenset({"basic_ads", "email_support", "basic_stats"})
_PROFESSIONAL_FEATURES = _BASIC_FEATURES | {
    "featured_ads",
    "priority_support",
    "whatsapp_support",
    "advanced_stats",
    "custom_reports",
    "admin_panel",
}
_BUSINESS_FEATURES = _PROFESSIONAL_FEATURES | {
    "premium_ads",
    "support_24_7",
    "phone_support",
    "complete_stats",
    "advanced_reports",
    "api_access",
}

PLANS: dict[str, PlanConfig] = {
    "basico": PlanConfig(
        name="basico",
        display_name="Básico",
        price_monthly=Decimal("59.90"),
        max_vehicles=Limited(5),
        max_featured_vehicles=Limited(0),
        max_photos_per_vehicle=Limited(5),
        storage_limit_mb=Limited(100),
        api_calls_per_month=Limited(0),
        features=_BASIC_FEATURES,
    ),
    "profissional": PlanConfig(
        name="profissional",
        display_name="Profissional",
        price_monthly=Decimal("299.00"),
        max_vehicles=Limited(30),
        max_featured_vehicles=Limited(3),
        max_photos_per_vehicle=Limited(10),
        storage_limit_mb=Limited(500),
        api_calls_per_month=Limited(1000),
        features=_PROFESSIONAL_FEATURES,
    ),
    "empresarial": PlanConfig(
        name="empresarial",
        display_name="Empresarial",
        price_monthly=Decimal("897.90"),
        max_vehicles=Limited(400),
        max_featured_vehicles=Limited(40),
        max_photos_per_vehicle=Limited(15),
        storage_limit_mb=Limited(2000),
        api_calls_per_month=Limited(5000),
        features=_BUSINESS_FEATURES,
    ),
    "ilimitado": PlanConfig(
        name="ilimitado",
        display_name="Ilimitado",
        price_monthly=Decimal("1897.90"),
        max_vehicles=UNLIMITED,
        max_featured_vehicles=Limited(100),
        max_photos_per_vehicle=Limited(20),
        storage_limit_mb=Limited(10000),
        api_calls_per_month=Limited(10000),
        features=_BUSINESS_FEATURES | {"dedicated_consulting"},
    ),
}

DEFAULT_PLAN = "basico"

# Names used by the subscription side of the product for the same tiers.
PLAN_ALIASES: dict[str, str] = {
    "premium": "profissional",
    "premium_plus": "empresarial",
}

PRIVILEGED_PLANS: frozenset[str] = frozenset({"ilimitado", "premium_plus", "empresarial"})

VALID_PLAN_NAMES: set[str] = set(PLANS.keys()) | set(PLAN_ALIASES.keys())


def resolve_plan_name(plan_name: str | None) -> str:
    """Canonical catalog key for ``plan_name``; unknown or empty gives the base tier."""
    if not plan_name:
        return DEFAULT_PLAN
    plan_name = PLAN_ALIASES.get(plan_name, plan_name)
    return plan_name if plan_name in PLANS else DEFAULT_PLAN


def get_plan(plan_name: str | None) -> PlanConfig:
    """Get plan config by name. Defaults to basico if unknown."""
    return PLANS[resolve_plan_name(plan_name)]


def is_privileged_plan(plan_name: str | None) -> bool:
    return plan_name in PRIVILEGED_PLANS


def has_feature(plan: PlanConfig, flag: str) -> bool:
    if flag not in FEATURE_FLAGS:
        raise ValueError(f"Unknown feature flag: {flag!r}")
    return flag in plan.features
