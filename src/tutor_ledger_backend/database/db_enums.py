'''
Static enums shared by the ORM models, the pydantic models and the services.
'''
import enum

class ListableEnum(str, enum.Enum):
    """A custom Enum base class that can list all member values."""
    @classmethod
    def get_all_names(cls) -> list[str]:
        return [member.value for member in cls]

class PaymentMethodType(ListableEnum):
    CASH = 'CASH'
    TRANSFER = 'TRANSFER'

class DebtActionType(ListableEnum):
    CREATE = 'create'
    UPDATE = 'update'
    REMOVE = 'remove'
    KEEP = 'keep'
    NONE = 'none'

class BalanceActionType(ListableEnum):
    INCREMENT = 'increment'
    DECREMENT = 'decrement'
    SET = 'set'
    NONE = 'none'

class DebtStatus(ListableEnum):
    UNPAID = 'UNPAID'
    PAID = 'PAID'
    RESTORED = 'RESTORED'
