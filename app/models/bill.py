import enum
from typing import Dict, FrozenSet


class BillStatus(str, enum.Enum):
	PENDING = "PENDING"
	PAID = "PAID"
	OVERDUE = "OVERDUE"


class PaymentMethod(str, enum.Enum):
	MPESA = "MPESA"
	BANK_TRANSACTION = "BANK_TRANSACTION"
	CASH = "CASH"


# PAID is terminal
BILL_TRANSITIONS: Dict[BillStatus, FrozenSet[BillStatus]] = {
	BillStatus.PENDING: frozenset({BillStatus.PAID, BillStatus.OVERDUE}),
	BillStatus.OVERDUE: frozenset({BillStatus.PAID}),
	BillStatus.PAID: frozenset(),
}


def can_transition(current: BillStatus, target: BillStatus) -> bool:
	return target in BILL_TRANSITIONS[BillStatus(current)]
