from .account import Account, AccountType, NormalBalance
from .auditlog import AuditLog
from .banking import (BankAccount, BankStatement, BankStatementEntry,
                      EntryStatus, StatementStatus)
from .bill import Bill, BillStatus, PaymentStatus
from .budget import Budget, BudgetLine, BudgetPeriodType, BudgetStatus
from .expense import Expense, ExpensePaymentStatus, ExpenseStatus
from .journal import (JournalEntry, JournalLine, JournalStatus, LineType,
                      ReferenceType)
from .payment import ApplicationType, PaymentApplication
from .resident import Resident, ResidentStatus
from .sequence import NumberSequence
