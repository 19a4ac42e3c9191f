from .auth import User, Role, Permission, RolePermission
from .audit import AuditTrail
from .pharmacy import Pharmacy, PharmacyStatuses
from .dues import (
    DueType,
    Due,
    DuePenalty,
    Payment,
    PaymentStatuses,
    AssignmentTypes,
    RecurringPeriods,
    ApprovalStatuses,
)
from .finance import FinancialRecord, RecordTypes, RecordCategories, RecordPaymentMethods, RecordStatuses
from .documents import OrganizationDocument, DocumentVersion, DocumentCategories, DocumentStatuses

__all__ = [
    'User', 'Role', 'Permission', 'RolePermission', 'AuditTrail',
    'Pharmacy', 'PharmacyStatuses',
    'DueType', 'Due', 'DuePenalty', 'Payment',
    'PaymentStatuses', 'AssignmentTypes', 'RecurringPeriods', 'ApprovalStatuses',
    'FinancialRecord', 'RecordTypes', 'RecordCategories', 'RecordPaymentMethods', 'RecordStatuses',
    'OrganizationDocument', 'DocumentVersion', 'DocumentCategories', 'DocumentStatuses',
]
