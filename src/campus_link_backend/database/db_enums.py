'''
Static enums mirroring the database ENUM types.
The values are what gets stored; compare ORM columns against `.value`.
'''
import enum

# --- Base Enum Class ---
class ListableEnum(str, enum.Enum):
    """A custom Enum base class that can list all member names."""
    @classmethod
    def get_all_names(cls) -> list[str]:
        return [member.value for member in cls]


class UserRole(ListableEnum):
    SUPER_ADMIN = 'super_admin'       # platform operator, no college
    COLLEGE_ADMIN = 'college_admin'
    TEACHER = 'teacher'
    STUDENT = 'student'
    PARENT = 'parent'

class UserStatus(ListableEnum):
    ACTIVE = 'active'
    INACTIVE = 'inactive'
    DELETED = 'deleted'

class SubscriptionStatus(ListableEnum):
    ACTIVE = 'active'
    INACTIVE = 'inactive'

class SubscriptionPlan(ListableEnum):
    BASIC = 'basic'
    PREMIUM = 'premium'
    ENTERPRISE = 'enterprise'

class AdmissionStatus(ListableEnum):
    PENDING = 'pending'
    APPROVED = 'approved'
    REJECTED = 'rejected'
    WITHDRAWN = 'withdrawn'

class ObligationStatus(ListableEnum):
    DUE = 'due'
    PARTIAL = 'partial'
    PAID = 'paid'
    OVERDUE = 'overdue'

class PaymentMethod(ListableEnum):
    CASH = 'cash'
    CARD = 'card'
    BANK_TRANSFER = 'bank_transfer'
    ONLINE = 'online'

class CollectionGrouping(ListableEnum):
    DATE = 'date'
    COURSE = 'course'
    PAYMENT_METHOD = 'payment_method'
