"""Points ledger service exports."""

from .awards import AwardEngine, AwardResult  # noqa: F401
from .customers import (  # noqa: F401
    CustomerDirectory,
    CustomerPickup,
    CustomerSnapshot,
    decode_time_uuid_cursor,
    encode_time_uuid_cursor,
)
from .errors import (  # noqa: F401
    AlreadyFulfilled,
    CodeNotFound,
    CustomerNotFound,
    DuplicateOperation,
    InsufficientPoints,
    InvalidAmount,
    InvalidQuantity,
    InvalidStateTransition,
    LedgerError,
    OfferNotAvailable,
    OfferNotFound,
    OrderNotFound,
    PreorderNotFound,
    ProductNotAvailable,
    ProductNotFound,
    RewardInactive,
    RewardNotFound,
    SettingsUnavailable,
    SoldOut,
)
from .pickups import PickupEngine, PickupQueueEntry, PickupResult  # noqa: F401
from .preorders import PreorderEngine, PreorderItemRequest  # noqa: F401
from .redemptions import RedemptionEngine, RedemptionResult  # noqa: F401
from .reservations import CancellationResult, ReservationEngine, ReservationResult  # noqa: F401
from .service import LedgerService  # noqa: F401
