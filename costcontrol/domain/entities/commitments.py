"""
Commitment Entities - Purchase orders and change orders.

Fields stay Optional: a null forecast is not the same thing as a zero
forecast, and the forecast precedence rules need to tell them apart.
"""
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional

from .values import ZERO, optional_decimal, to_decimal


@dataclass(frozen=True)
class PurchaseOrder:
    """
    A committed vendor obligation.

    Attributes:
        committed_amount: Amount committed on the order
        invoiced_amount: Amount invoiced to date (spent)
        forecast_amount: Forecast entered on the order
        forecasted_final_cost: Manually entered final cost; wins over forecast_amount
        total_amount: Order total, used where committed_amount is missing
    """

    committed_amount: Optional[Decimal] = None
    invoiced_amount: Optional[Decimal] = None
    forecast_amount: Optional[Decimal] = None
    forecasted_final_cost: Optional[Decimal] = None
    total_amount: Optional[Decimal] = None
    po_number: str = ""
    project_id: Optional[str] = None

    @property
    def invoiced(self) -> Decimal:
        return self.invoiced_amount if self.invoiced_amount is not None else ZERO

    @property
    def committed(self) -> Decimal:
        return self.committed_amount if self.committed_amount is not None else ZERO

    @classmethod
    def from_dict(cls, data: dict) -> 'PurchaseOrder':
        return cls(
            committed_amount=optional_decimal(data.get('committed_amount')),
            invoiced_amount=optional_decimal(data.get('invoiced_amount')),
            forecast_amount=optional_decimal(data.get('forecast_amount')),
            forecasted_final_cost=optional_decimal(data.get('forecasted_final_cost')),
            total_amount=optional_decimal(data.get('total_amount')),
            po_number=str(data.get('po_number') or ''),
            project_id=data.get('project_id'),
        )


class ChangeOrderStatus(Enum):
    """Status of a change order. New orders start as drafts."""
    DRAFT = "draft"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"

    @classmethod
    def parse(cls, value: Optional[str], default: Optional["ChangeOrderStatus"] = None) -> "ChangeOrderStatus":
        """Case-insensitive lookup; blank or unrecognised statuses give `default` (DRAFT)."""
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return default or cls.DRAFT


@dataclass(frozen=True)
class ChangeOrder:
    """A contract change; only approved ones revise the contract value."""

    amount: Decimal = ZERO
    status: ChangeOrderStatus = ChangeOrderStatus.APPROVED
    co_number: str = ""
    description: str = ""

    @property
    def is_approved(self) -> bool:
        return self.status is ChangeOrderStatus.APPROVED

    @classmethod
    def from_dict(cls, data: dict) -> 'ChangeOrder':
        return cls(
            amount=to_decimal(data.get('amount')),
            status=ChangeOrderStatus.parse(data.get('status') or 'approved'),
            co_number=str(data.get('co_number') or ''),
            description=str(data.get('description') or ''),
        )
