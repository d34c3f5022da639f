"""SQLAlchemy models package."""

from .badge import Badge, BadgeConditionType, CustomerBadge  # noqa: F401
from .customer import Customer, LedgerTransaction, TransactionType  # noqa: F401
from .offer import ORDER_PICKUP_CODE_PREFIX, Offer, OfferOrder, OfferOrderStatus  # noqa: F401
from .preorder import (  # noqa: F401
    PREORDER_PICKUP_CODE_PREFIX,
    Preorder,
    PreorderItem,
    PreorderProduct,
    PreorderStatus,
    PreorderUnit,
)
from .reward import Claim, ClaimStatus, Reward  # noqa: F401
from .setting import Setting  # noqa: F401
